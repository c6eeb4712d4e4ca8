"""Runtime configuration read from the environment."""

import logging
import os
import sys
from dataclasses import dataclass, field, replace
from typing import List, Mapping, Optional

TRUE_VALUES = {'1', 'true', 'yes', 'on'}

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == '':
        return default
    return raw.strip().lower() in TRUE_VALUES


def _env_int(env: Mapping[str, str], name: str) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == '':
        return None
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _default_workers() -> int:
    return max(1, min(4, os.cpu_count() or 1))


@dataclass(frozen=True)
class Settings:
    typst_bin: str = 'typst'
    font_paths: List[str] = field(default_factory=list)
    ignore_system_fonts: bool = False
    template_path: Optional[str] = None
    max_workers: int = field(default_factory=_default_workers)
    utc_offset: Optional[int] = None
    commit_hash: str = 'unknown'
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        env = os.environ if environ is None else environ
        typst_bin = env.get('LASKUGEN_TYPST_BIN') or env.get('TYPST_BIN') or 'typst'
        font_paths = [p for p in env.get('LASKUGEN_FONT_PATHS', '').split(os.pathsep) if p]
        max_workers = _env_int(env, 'LASKUGEN_MAX_WORKERS')
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"LASKUGEN_MAX_WORKERS must be positive, got {max_workers}")
        return cls(
            typst_bin=typst_bin,
            font_paths=font_paths,
            ignore_system_fonts=_env_bool(env, 'LASKUGEN_IGNORE_SYSTEM_FONTS'),
            template_path=env.get('LASKUGEN_TEMPLATE') or None,
            max_workers=max_workers if max_workers is not None else _default_workers(),
            utc_offset=_env_int(env, 'LASKUGEN_UTC_OFFSET'),
            commit_hash=env.get('COMMIT_HASH') or 'unknown',
            log_level=(env.get('LASKUGEN_LOG_LEVEL') or 'INFO').upper(),
        )

    def with_overrides(self, **changes) -> 'Settings':
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def configure_logging(level: str = 'INFO') -> None:
    """Install one stderr handler on the package logger."""
    logger = logging.getLogger('laskugen')
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, '_laskugen', False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._laskugen = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
