from typing import Optional


class PipelineError(Exception):
    """파이프라인 공통 예외"""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage


class ConfigurationError(PipelineError):
    """폴더 경로 / SMB 접속 정보 등 설정 오류"""


class NotFoundError(PipelineError):
    """존재하지 않는 파일/폴더 ID"""


class ConflictError(PipelineError):
    """처리 중인 레코드 재처리, 이미 존재하는 파일명 등"""


class FileMissingError(PipelineError):
    """디스크에서 파일을 찾을 수 없음"""


class ExtractionError(PipelineError):
    """OCR 실패 또는 빈 결과"""

    def __init__(self, message: str):
        super().__init__(message, stage="OCR")


class AnalysisError(PipelineError):
    """LLM 문서 분석 실패"""

    def __init__(self, message: str):
        super().__init__(message, stage="ANALYZE")
