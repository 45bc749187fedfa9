from abc import ABC, abstractmethod


class BaseTextExtractor(ABC):
    file_type: str

    @abstractmethod
    def extract_text(self, file_path: str) -> str:
        """
        문서 전체 텍스트 반환

        실패 시 ExtractionError
        (빈 결과 판정은 파이프라인에서 수행)
        """
        pass
