import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(ValueError):
    """Raised when a stage is missing a required setting."""
    pass


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _optional_int(name: str) -> Optional[int]:
    value = _optional(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def require(value: Optional[str], setting: str) -> str:
    if not value:
        raise ConfigurationError(f"{setting} environment variable is required")
    return value


@dataclass
class GoogleCloudConfig:
    project_id: Optional[str] = None
    bucket_name: Optional[str] = None
    credentials_path: Optional[str] = None
    client_email: Optional[str] = None
    private_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "GoogleCloudConfig":
        return cls(
            project_id=_optional("GOOGLE_CLOUD_PROJECT_ID"),
            bucket_name=_optional("GOOGLE_CLOUD_STORAGE_BUCKET"),
            credentials_path=_optional("GOOGLE_APPLICATION_CREDENTIALS"),
            client_email=_optional("GOOGLE_CLIENT_EMAIL"),
            private_key=os.getenv("GOOGLE_PRIVATE_KEY") or None
        )


@dataclass
class DriveConfig:
    recordings_folder_id: Optional[str] = None

    @classmethod
    def from_env(cls) -> "DriveConfig":
        return cls(recordings_folder_id=_optional("RECORDINGS_FOLDER_ID"))


@dataclass
class SheetsConfig:
    tracking_sheet_id: Optional[str] = None
    tracking_tab: str = "Jobs"
    roster_spreadsheet_id: Optional[str] = None
    roster_tab: str = "Current_Students"
    homework_tab: str = "Homework_Push"
    roster_drive_folder_column: Optional[int] = None  # 0-based fallback
    roster_lifestyle_column: Optional[int] = 16  # 0-based fallback (column Q)

    @classmethod
    def from_env(cls) -> "SheetsConfig":
        lifestyle_column = _optional_int("ROSTER_LIFESTYLE_COLUMN")
        return cls(
            tracking_sheet_id=_optional("TRACKING_SHEET_ID"),
            tracking_tab=os.getenv("TRACKING_TAB", cls.tracking_tab),
            roster_spreadsheet_id=_optional("STUDENT_ROSTER_ID"),
            roster_tab=os.getenv("ROSTER_TAB", cls.roster_tab),
            homework_tab=os.getenv("HOMEWORK_SHEET_NAME", cls.homework_tab),
            roster_drive_folder_column=_optional_int("ROSTER_DRIVE_FOLDER_COLUMN"),
            roster_lifestyle_column=lifestyle_column if lifestyle_column is not None else cls.roster_lifestyle_column
        )


@dataclass
class SpeechmaticsConfig:
    api_key: Optional[str] = None
    base_url: str = "https://asr.api.speechmatics.com/v2"
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "SpeechmaticsConfig":
        return cls(
            api_key=_optional("SPEECHMATICS_API_KEY"),
            base_url=os.getenv("SPEECHMATICS_BASE_URL", cls.base_url).rstrip("/"),
            timeout=float(os.getenv("SPEECHMATICS_TIMEOUT", cls.timeout))
        )


@dataclass
class SubmissionConfig:
    cloud_run_url: Optional[str] = None
    timeout: float = 120.0

    @classmethod
    def from_env(cls) -> "SubmissionConfig":
        return cls(
            cloud_run_url=_optional("CLOUD_RUN_URL"),
            timeout=float(os.getenv("CLOUD_RUN_TIMEOUT", cls.timeout))
        )


@dataclass
class HomeworkConfig:
    portal_base_url: Optional[str] = None
    prompt_template_path: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "HomeworkConfig":
        template_path = _optional("HOMEWORK_PROMPT_TEMPLATE")
        portal = _optional("HOMEWORK_PORTAL_BASEURL")
        return cls(
            portal_base_url=portal.rstrip("/") if portal else None,
            prompt_template_path=Path(template_path) if template_path else None
        )


@dataclass
class MailConfig:
    api_key: Optional[str] = None
    from_address: Optional[str] = None
    from_name: Optional[str] = None
    base_url: str = "https://api.mailersend.com/v1"
    timeout: float = 30.0

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.from_address)

    @classmethod
    def from_env(cls) -> "MailConfig":
        return cls(
            api_key=_optional("MAILERSEND_API_KEY"),
            from_address=_optional("MAIL_FROM_ADDRESS"),
            from_name=_optional("MAIL_FROM_NAME"),
            base_url=os.getenv("MAILERSEND_BASE_URL", cls.base_url).rstrip("/"),
            timeout=float(os.getenv("MAIL_TIMEOUT", cls.timeout))
        )


@dataclass
class EduScribeConfig:
    google_cloud: GoogleCloudConfig
    drive: DriveConfig
    sheets: SheetsConfig
    speechmatics: SpeechmaticsConfig
    submission: SubmissionConfig
    homework: HomeworkConfig
    mail: MailConfig
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    timezone: Optional[str] = None

    @classmethod
    def from_env(cls) -> "EduScribeConfig":
        log_file = _optional("EDUSCRIBE_LOG_FILE")

        return cls(
            google_cloud=GoogleCloudConfig.from_env(),
            drive=DriveConfig.from_env(),
            sheets=SheetsConfig.from_env(),
            speechmatics=SpeechmaticsConfig.from_env(),
            submission=SubmissionConfig.from_env(),
            homework=HomeworkConfig.from_env(),
            mail=MailConfig.from_env(),
            log_level=os.getenv("EDUSCRIBE_LOG_LEVEL", "INFO"),
            log_file=Path(log_file) if log_file else None,
            timezone=_optional("EDUSCRIBE_TIMEZONE")
        )


# Global configuration instance, read by the CLI factories only
_config: Optional[EduScribeConfig] = None


def get_config() -> EduScribeConfig:
    global _config
    if _config is None:
        _config = EduScribeConfig.from_env()
    return _config


def set_config(config: EduScribeConfig) -> None:
    global _config
    _config = config
