# config/runtime_settings.py
"""
런타임 설정 관리 모듈

설정 우선순위: DB > 환경변수(.env) > 기본값
서버 시작 시 DB에서 설정을 로드하고, 변경 시 DB에 저장합니다.
문서 분석(업체명/내용요약 추출)에 사용할 LLM 제공자와 모델을 관리합니다.
"""

import os
import logging
from typing import Optional
from dataclasses import dataclass, field

logger = logging.getLogger("settings")

DEFAULT_PROVIDER = "gemini"
DEFAULT_MODEL = "gemini-2.5-flash"


@dataclass
class LLMSettings:
    """LLM 관련 설정"""
    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL

    # Provider별 사용 가능한 모델 목록
    available_models: dict = field(default_factory=lambda: {
        "gemini": [
            "gemini-2.5-flash",
            "gemini-2.5-pro",
            "gemini-1.5-flash",
        ],
        "openai": [
            "gpt-4o",
            "gpt-4o-mini",
            "gpt-4-turbo",
        ],
        "ollama": [
            "llama3.2",
            "llama3.1",
            "qwen2.5",
            "gemma2",
        ],
    })


class RuntimeSettings:
    """
    런타임 설정 싱글톤 (DB 영구 저장)

    사용법:
        from config.runtime_settings import runtime_settings

        # 조회
        provider = runtime_settings.llm.provider
        model = runtime_settings.llm.model

        # 변경 (자동 DB 저장)
        runtime_settings.set_llm("ollama", "llama3.2")
    """

    _instance: Optional["RuntimeSettings"] = None

    # 설정 키 상수
    KEY_LLM_PROVIDER = "llm_provider"
    KEY_LLM_MODEL = "llm_model"

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        # 기본값으로 초기화
        self.llm = LLMSettings(
            provider=os.getenv("LLM_PROVIDER", DEFAULT_PROVIDER),
            model=os.getenv("LLM_MODEL", DEFAULT_MODEL),
        )

        self._initialized = True

    def _get_db_session(self):
        """DB 세션 가져오기"""
        try:
            from config.db import SessionLocal
            return SessionLocal()
        except Exception as e:
            logger.warning(f"[SETTINGS] DB session failed: {e}")
            return None

    def _load_from_db(self):
        """DB에서 설정 로드"""
        session = self._get_db_session()
        if not session:
            return

        try:
            from models.settings import SystemSettings

            provider_row = session.query(SystemSettings).filter(
                SystemSettings.setting_key == self.KEY_LLM_PROVIDER
            ).first()
            if provider_row:
                self.llm.provider = provider_row.setting_value

            model_row = session.query(SystemSettings).filter(
                SystemSettings.setting_key == self.KEY_LLM_MODEL
            ).first()
            if model_row:
                self.llm.model = model_row.setting_value

            logger.info(f"[SETTINGS] Loaded from DB: LLM={self.llm.provider}/{self.llm.model}")

        except Exception as e:
            logger.warning(f"[SETTINGS] DB load failed (using defaults): {e}")
        finally:
            session.close()

    def _save_to_db(self, key: str, value: str, description: str = None):
        """DB에 설정 저장 (upsert)"""
        session = self._get_db_session()
        if not session:
            return False

        try:
            from models.settings import SystemSettings

            existing = session.query(SystemSettings).filter(
                SystemSettings.setting_key == key
            ).first()

            if existing:
                existing.setting_value = value
                if description:
                    existing.description = description
            else:
                session.add(SystemSettings(
                    setting_key=key,
                    setting_value=value,
                    description=description
                ))

            session.commit()
            logger.info(f"[SETTINGS] Saved to DB: {key}={value}")
            return True

        except Exception as e:
            session.rollback()
            logger.error(f"[SETTINGS] DB save failed: {e}")
            return False
        finally:
            session.close()

    def set_llm(self, provider: str, model: str) -> bool:
        """
        LLM 설정 변경 (메모리 + DB 저장)

        Args:
            provider: gemini, openai, ollama
            model: provider별 모델명

        Returns:
            성공 여부
        """
        if provider not in self.llm.available_models:
            return False

        self.llm.provider = provider
        self.llm.model = model

        self._save_to_db(self.KEY_LLM_PROVIDER, provider, "LLM 제공자")
        self._save_to_db(self.KEY_LLM_MODEL, model, "LLM 모델명")

        return True

    def get_llm_config(self) -> dict:
        """현재 LLM 설정 반환"""
        return {
            "provider": self.llm.provider,
            "model": self.llm.model,
            "available_providers": list(self.llm.available_models.keys()),
            "available_models": self.llm.available_models,
        }

    def to_dict(self) -> dict:
        return {
            "llm": self.get_llm_config(),
            "storage": "database",
        }

    def reset_to_env(self):
        """환경변수 값으로 초기화 (DB도 업데이트)"""
        env_provider = os.getenv("LLM_PROVIDER", DEFAULT_PROVIDER)
        env_model = os.getenv("LLM_MODEL", DEFAULT_MODEL)

        self.llm.provider = env_provider
        self.llm.model = env_model

        self._save_to_db(self.KEY_LLM_PROVIDER, env_provider, "LLM 제공자")
        self._save_to_db(self.KEY_LLM_MODEL, env_model, "LLM 모델명")

        logger.info(f"[SETTINGS] Reset to environment defaults: LLM={env_provider}/{env_model}")

    def reload_from_db(self):
        """DB에서 설정 다시 로드 (서버 시작 시 테이블 생성 후 호출)"""
        self._load_from_db()


# 싱글톤 인스턴스
runtime_settings = RuntimeSettings()
