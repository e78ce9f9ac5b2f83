from __future__ import annotations

import typing as t
from pathlib import Path

import alembic.config
import sqlalchemy
import sqlalchemy.event
import sqlalchemy.orm
import sqlalchemy.pool
from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Configuration, Container, Factory, Object, Provider, Resource, Singleton
from sqlalchemy.engine.url import URL as DSN

import gradebook.lib.json as json

from ..config.storage import PersistentSettings, PostgresqlSettings, SqliteSettings, StorageSettings
from ..di import NotReady
from ..provider import LoggingProvider


def create_dsn(config: PersistentSettings) -> DSN:
    if config.postgresql is not None:
        pg: PostgresqlSettings = config.postgresql
        return DSN.create(
            pg.driver,
            database=pg.database,
            username=pg.username,
            password=pg.password.get_secret_value() if pg.password else None,
            port=pg.port,
            host=str(pg.host) if pg.host else None,
        )
    assert config.sqlite is not None
    lite: SqliteSettings = config.sqlite
    return DSN.create(lite.driver, database=str(lite.path) if lite.path else None)


def provide_alembic_conf(
    migration_path: Path, config: PersistentSettings, root: Path | NotReady
) -> alembic.config.Config:
    if isinstance(root, NotReady):
        raise RuntimeError("root path is unavailable")

    escaped_str = create_dsn(config).render_as_string(hide_password=False).replace("%", "%%")

    ac = alembic.config.Config()
    ac.set_main_option("script_location", str(root / migration_path))
    ac.set_section_option("alembic", "sqlalchemy.url", escaped_str)
    ac.set_section_option("alembic", "file_template", "%%(year)d-%%(month).2d-%%(day).2d-%%(slug)s-%%(rev)s")
    return ac


def provide_engine(config: PersistentSettings, logging: LoggingProvider) -> sqlalchemy.Engine:
    logger = logging.get_logger()
    dsn = create_dsn(config)

    if config.sqlite is not None:
        kwargs: dict[str, t.Any] = {}
        if config.sqlite.path is None:
            # one shared connection, otherwise every checkout sees a fresh empty database
            kwargs.update(poolclass=sqlalchemy.pool.StaticPool, connect_args={"check_same_thread": False})
        engine = sqlalchemy.create_engine(
            dsn, echo=config.echo, json_serializer=json.dumps, json_deserializer=json.loads, **kwargs
        )
        sqlalchemy.event.listen(engine, "connect", register_sqlite_pragmas)
        sqlalchemy.event.listen(engine, "begin", emit_sqlite_begin)
    else:
        engine = sqlalchemy.create_engine(
            dsn, echo=config.echo, json_serializer=json.dumps, json_deserializer=json.loads
        )
        sqlalchemy.event.listen(engine, "connect", register_timezone)

    logger.info(
        "initialized SQLAlchemy engine",
        extra={
            "driver": dsn.drivername,
            "database": dsn.database,
            "host": dsn.host,
            "port": dsn.port,
        },
    )
    return engine


def provide_session(engine: sqlalchemy.Engine) -> sqlalchemy.orm.Session:
    """Create a new session; callers open transactions with ``session.begin()``."""
    maker = sqlalchemy.orm.sessionmaker(engine, expire_on_commit=False, autoflush=False)
    return maker(autobegin=False)


class PersistentContainer(DeclarativeContainer):
    config = Configuration()
    debug: Provider[bool] = Object()
    logging: Provider[LoggingProvider] = Resource()
    root: Provider[Path | NotReady] = Object()

    settings: Provider[PersistentSettings] = Singleton(PersistentSettings, config)
    alembic_config: Provider[alembic.config.Config] = Singleton(
        provide_alembic_conf,
        migration_path=Path("migrations/"),
        config=settings,
        root=root,
    )
    engine: Provider[sqlalchemy.Engine] = Singleton(provide_engine, config=settings, logging=logging)
    session: Provider[sqlalchemy.orm.Session] = Factory(provide_session, engine=engine)


class StorageContainer(DeclarativeContainer):
    config: Provider[StorageSettings] = Configuration(strict=True)
    debug: Provider[bool] = Object()
    logging: Provider[LoggingProvider] = Resource()
    root: Provider[Path | NotReady] = Object()

    persistent: Provider[PersistentContainer] = Container(
        PersistentContainer, config=config.persistent, debug=debug, logging=logging, root=root
    )


def register_sqlite_pragmas(dbapi_conn: t.Any, _: t.Any) -> None:
    # pysqlite's own transaction handling defeats SAVEPOINT; we emit BEGIN ourselves
    dbapi_conn.isolation_level = None
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def emit_sqlite_begin(conn: sqlalchemy.Connection) -> None:
    conn.exec_driver_sql("BEGIN")


def register_timezone(dbapi_conn: t.Any, _: t.Any) -> None:
    """Set connection timezone to UTC for consistent datetime handling.

    PostgreSQL TIMESTAMP WITH TIME ZONE stores timestamps in UTC but returns
    them converted to the connection's timezone. Setting UTC ensures consistent
    timezone-aware datetimes across all environments.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("SET TIMEZONE TO 'UTC'")
    cursor.close()
