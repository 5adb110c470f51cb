"""
스토리 생성/적재 파이프라인 예외 정의
"""

from typing import Optional


class PipelineError(Exception):
    """파이프라인 기본 예외"""
    pass


class TransportError(PipelineError):
    """생성 서비스의 과부하 이외 HTTP 실패 (재시도 없음)"""

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        super().__init__(f"Generation service error {status}: {message}")


class OverloadExhausted(PipelineError):
    """503 과부하 응답이 재시도 한도까지 계속됨"""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Generation service still overloaded after {attempts} attempts")


class EmptyGenerationResult(PipelineError):
    """성공 응답이지만 텍스트가 비어 있음"""
    pass


class ParseAmbiguity(PipelineError):
    """주간 세그먼트에 요일 마커가 없음 (호출측에는 경고로만 전달)"""

    def __init__(self, title: str, reason: str = "missing day-of-week marker"):
        self.title = title
        self.reason = reason
        super().__init__(f"Segment '{title}' dropped: {reason}")


class ThemeResolutionFailure(PipelineError):
    """폴백 이후에도 테마를 하나도 확보하지 못함"""
    pass


class PersistenceError(PipelineError):
    """트랜잭션 실패 (롤백 완료 후 전달)"""
    pass


class NotFound(PipelineError):
    """대상 엔티티 없음"""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidDayLabel(PipelineError):
    """인식할 수 없는 요일 이름"""

    def __init__(self, label):
        self.label = label
        super().__init__(f"Unrecognized day-of-week label: {label!r}")


class ThemeInUse(PipelineError):
    """스토리에 연결된 테마는 삭제 불가"""
    pass


class GenerationCancelled(PipelineError):
    """호출측이 배치 실행을 취소함"""
    pass


class GenerationRunError(PipelineError):
    """배치 실행 중단: 실패 단계, 원인, 부분 진행 로그를 함께 전달"""

    def __init__(self, step: str, cause: BaseException, log):
        self.step = step
        self.cause = cause
        self.log = log
        super().__init__(f"{step}: {cause}")
