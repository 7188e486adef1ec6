from pathlib import Path

from alembic.config import Config

from alembic import command

_REPO_ROOT = Path(__file__).resolve().parents[3]


def alembic_config(db_url: str, ini_path: str | Path | None = None) -> Config:
    ini = Path(ini_path) if ini_path is not None else _REPO_ROOT / "alembic.ini"
    cfg = Config(str(ini))
    cfg.set_main_option("script_location", str(ini.parent / "alembic"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def run_migrations(db_url: str, ini_path: str | Path | None = None) -> None:
    command.upgrade(alembic_config(db_url, ini_path), "head")
