# === FILE: tx_scout/config.py ===
"""
Модуль для загрузки и валидации конфигурации TxScout.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from tx_scout.parser.signatures import DEFAULT_SIGNATURES, BlockSignatureTable, load_signatures

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

_ADVANCED_FILTER = "https://etherscan.io/advanced-filter?tkn={target}&txntype=%d&ps=100&p={page}"

DEFAULT_CATEGORIES: Dict[str, str] = {
    "external": _ADVANCED_FILTER % 2,
    "internal": _ADVANCED_FILTER % 1,
}


class WaveDelays(BaseModel):
    """Паузы между волнами (секунд) в зависимости от числа ошибок в волне."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    base: float = Field(0.1, ge=0, description="Не более 2 ошибок.")
    moderate: float = Field(0.8, ge=0, description="От 3 до 5 ошибок.")
    high: float = Field(2.0, ge=0, description="Больше 5 ошибок.")


class RetryBackoff(BaseModel):
    """Шаг и потолок задержки между встроенными попытками (секунд)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    content_step: float = Field(0.5, ge=0)
    content_cap: float = Field(2.0, ge=0)
    network_step: float = Field(1.0, ge=0)
    network_cap: float = Field(3.0, ge=0)
    other_step: float = Field(0.3, ge=0)
    other_cap: float = Field(1.0, ge=0)


class _PacingFields(BaseModel):
    """Общие поля темпа запросов для файла конфига и одной сессии."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_windows: int = Field(10, ge=1, description="Число параллельных слотов.")
    total_pages: int = Field(500, ge=1, description="Запрошенный лимит страниц.")
    request_timeout: float = Field(8.0, gt=0, description="Таймаут навигации (секунд).")
    task_timeout: float = Field(45.0, gt=0, description="Жесткий потолок на задачу страницы.")
    slot_cooldown: float = Field(0.3, ge=0, description="Пауза между запросами одного слота.")
    max_task_retries: int = Field(2, ge=1, description="Число попыток на страницу в волне.")
    auto_retry_failed: bool = Field(True, description="Повторный проход по упавшим страницам.")
    wave_delays: WaveDelays = Field(default_factory=WaveDelays)
    retry_backoff: RetryBackoff = Field(default_factory=RetryBackoff)
    min_content_length: int = Field(500, ge=0, description="Минимальная длина разметки.")
    max_matches: int = Field(10_000, ge=1, description="Предел совпадений на страницу.")


class SessionConfig(_PacingFields):
    """Неизменяемая конфигурация одной сессии (одна категория транзакций)."""

    target_address: str
    category: str
    url_template: str

    @field_validator("target_address")
    def _check_address(cls, v: str) -> str:
        v = v.strip()
        if not _ADDRESS_RE.match(v):
            raise ValueError(f"не похоже на адрес контракта: {v!r}")
        return v

    def page_url(self, page: int) -> str:
        return self.url_template.format(target=self.target_address, page=page)


class ScraperConfig(_PacingFields):
    """Конфигурация запуска: темп, категории, рендерер и сигнатуры блокировок."""

    categories: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORIES),
        description="Имя категории -> шаблон URL с {target} и {page}.",
    )
    renderer: Literal["http", "browser"] = Field("http", description="Тип рендерера.")
    user_agent: str = Field(
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
        min_length=1,
    )
    headless: bool = True
    settle_delay: float = Field(0.8, ge=0, description="Ожидание после навигации в браузере.")
    content_timeout: float = Field(5.0, gt=0, description="Таймаут чтения разметки.")
    bypass_state_file: Path = Field(Path(".challenge-passed"))
    block_signatures: BlockSignatureTable = Field(default_factory=lambda: DEFAULT_SIGNATURES)
    signatures_file: Optional[Path] = None

    @field_validator("categories")
    def _check_categories(cls, v: Dict[str, str]) -> Dict[str, str]:
        if not v:
            raise ValueError("нужна хотя бы одна категория")
        for name, template in v.items():
            if "{page}" not in template or "{target}" not in template:
                raise ValueError(f"шаблон категории {name!r} должен содержать {{target}} и {{page}}")
        return v

    @model_validator(mode="before")
    @classmethod
    def _load_signatures_file(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not data.get("signatures_file"):
            return data
        path = Path(data["signatures_file"]).expanduser()
        if not path.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path))
        # файл сигнатур важнее встроенной таблицы
        return {**data, "block_signatures": load_signatures(path)}

    def session_config(self, target: str, category: str) -> SessionConfig:
        """Собирает SessionConfig для одной категории."""
        if category not in self.categories:
            raise KeyError(f"неизвестная категория: {category}")
        pacing = {name: getattr(self, name) for name in _PacingFields.model_fields}
        return SessionConfig(
            target_address=target,
            category=category,
            url_template=self.categories[category],
            **pacing,
        )


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> ScraperConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект ScraperConfig.
    Без пути берёт configs/default.yaml, а если его нет, значения по умолчанию.
    При отсутствии явно указанного файла бросает FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return ScraperConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    # относительные пути считаются от каталога конфига
    sig = data.get("signatures_file")
    if sig and not Path(sig).expanduser().is_absolute():
        data["signatures_file"] = path_obj.parent / sig

    try:
        return ScraperConfig(**data)
    except ValidationError:
        raise


__all__ = [
    "WaveDelays",
    "RetryBackoff",
    "SessionConfig",
    "ScraperConfig",
    "DEFAULT_CATEGORIES",
    "load_config",
]
