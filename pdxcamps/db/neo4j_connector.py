"""Shared Neo4j driver for the camps document store.

Settings are read from the environment, after a project-root ``.env`` file
has filled in anything not already set:

    NEO4J_URI       default bolt://localhost:7687
    NEO4J_USER      default neo4j
    NEO4J_PASSWORD  required
    NEO4J_DATABASE  optional, server default otherwise
"""
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

try:
    from neo4j import GraphDatabase
except Exception as _import_exc:
    GraphDatabase = None
    _neo4j_import_exc = _import_exc

logger = logging.getLogger(__name__)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

_driver = None
_settings: Optional["Neo4jSettings"] = None


@dataclass(frozen=True)
class Neo4jSettings:
    uri: str
    user: str
    password: str
    database: Optional[str] = None


def load_dotenv(path: Optional[str] = None) -> int:
    """Copy KEY=VALUE pairs from ``.env`` into ``os.environ`` without overriding.

    Returns how many variables were set.
    """
    env_path = path or os.path.join(PROJECT_ROOT, ".env")
    if not os.path.isfile(env_path):
        return 0
    loaded = 0
    try:
        with open(env_path, "r", encoding="utf-8") as f:
            for raw in f:
                line = raw.strip()
                if line.startswith("export "):
                    line = line[len("export "):]
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, _, value = line.partition("=")
                key = key.strip()
                if key and not os.environ.get(key):
                    os.environ[key] = value.strip().strip("'\"")
                    loaded += 1
    except OSError as exc:
        logger.warning("Could not read %s: %s", env_path, exc)
    return loaded


def settings_from_env() -> Neo4jSettings:
    load_dotenv()
    password = os.getenv("NEO4J_PASSWORD")
    if not password:
        raise RuntimeError(
            "NEO4J_PASSWORD is not set.\n"
            f"Export it or add it to {os.path.join(PROJECT_ROOT, '.env')}, e.g.\n"
            "NEO4J_URI=bolt://localhost:7687\nNEO4J_USER=neo4j\nNEO4J_PASSWORD=your_password"
        )
    return Neo4jSettings(
        uri=os.getenv("NEO4J_URI") or "bolt://localhost:7687",
        user=os.getenv("NEO4J_USER") or "neo4j",
        password=password,
        database=os.getenv("NEO4J_DATABASE") or None,
    )


def get_driver():
    """Return the process-wide driver, connecting on first use."""
    global _driver, _settings
    if GraphDatabase is None:
        raise RuntimeError(
            "The 'neo4j' Python package is not installed. Install the project with: pip install -e .\n"
            f"Import error: {_neo4j_import_exc!r}"
        )
    if _driver is None:
        _settings = settings_from_env()
        try:
            _driver = GraphDatabase.driver(_settings.uri, auth=(_settings.user, _settings.password))
        except Exception as exc:
            raise RuntimeError(f"Could not create a Neo4j driver for {_settings.uri}: {exc}") from exc
        logger.info("Neo4j driver ready for %s", _settings.uri)
    return _driver


def close_driver() -> None:
    global _driver
    if _driver is not None:
        _driver.close()
        _driver = None
        logger.info("Neo4j driver closed")


def run_cypher(query: str, parameters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Run one statement in its own session and return the rows as dicts."""
    driver = get_driver()
    with driver.session(database=_settings.database if _settings else None) as session:
        return [record.data() for record in session.run(query, parameters or {})]
