from typing import Annotated
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.types import NoDecode


DEFAULT_DB_PATH = ".data/lexmora.sqlite3"
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    環境変数から読み込まれるアプリ設定クラス。
    - lexmora_db_path: 単語レコードを保存する SQLite DB のパス
    - review_timezone: 「今日」「連続学習日数」を判定する暦日のタイムゾーン
    - review_due_limit: 復習キューの既定上限（未指定なら全件）
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )

    # --- 単語ストアの永続化設定 ---
    lexmora_db_path: str = Field(
        default=DEFAULT_DB_PATH,
        description="Path to the word store SQLite database / 単語ストア用SQLite DBパス",
    )
    review_timezone: str = Field(
        default="UTC",
        description="IANA timezone used for calendar-day metrics / 暦日判定に使うタイムゾーン",
    )
    review_due_limit: int | None = Field(
        default=None,
        ge=1,
        description="Default max items in the due queue / 復習キューの既定最大件数",
    )

    # --- Operations ---
    log_level: str = Field(
        default="INFO",
        description="Root log level / ログレベル",
    )
    api_host: str = Field(default="127.0.0.1", description="Bind host for `lexmora serve`")
    api_port: int = Field(default=8000, description="Bind port for `lexmora serve`")
    allowed_cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        description=(
            "Origins allowed to call the API, e.g. the extension origin / "
            "API 呼び出しを許可するオリジン（カンマ区切り）"
        ),
    )

    # Pydantic v2 settings config
    # - env_file: .env を読み込む
    # - extra: .env に存在する未使用キーを無視
    # - case_sensitive: 環境変数キーの大小文字を区別しない
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("review_timezone", mode="after")
    @classmethod
    def _validate_review_timezone(cls, value: str) -> str:
        """Reject unknown IANA zone names at startup.

        なぜ: 連続学習日数は暦日境界で判定するため、タイムゾーン名の誤記は
        静かに UTC へ落ちるより起動時に失敗させた方が原因を追いやすい。
        """

        name = (value or "").strip() or "UTC"
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"REVIEW_TIMEZONE is not a known timezone: {value!r}") from exc
        return name

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}")
        return level

    @field_validator("allowed_cors_origins", mode="before")
    @classmethod
    def _normalise_allowed_cors_origins(
        cls, raw_origins: object
    ) -> tuple[str, ...] | object:  # pragma: no cover - pydantic handles typing
        """Convert environment input into a deduplicated tuple of origins.

        なぜ: CORS 設定を `.env` で管理するときに空白や重複が混ざりやすいため、
        FastAPI へ渡す前にトリムと重複排除を行って安全な配列へ正規化する。
        """

        if raw_origins is None:
            candidates: list[str] = []
        elif isinstance(raw_origins, str):
            candidates = raw_origins.split(",")
        else:
            try:
                candidates = list(raw_origins)
            except TypeError:
                return raw_origins

        normalised: list[str] = []
        seen: set[str] = set()
        for candidate in candidates:
            if not isinstance(candidate, str):
                continue
            trimmed = candidate.strip()
            if not trimmed or trimmed in seen:
                continue
            seen.add(trimmed)
            normalised.append(trimmed)

        return tuple(normalised)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.review_timezone)


settings = Settings()
