from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine,async_sessionmaker,AsyncSession
from storefront.config.settings import config_settings
from storefront.db.utils import _normalize_db_url

DATABASE_URL=_normalize_db_url(config_settings.DATABASE_URL)


def _sqlite_transactions(engine):
    # pysqlite's implicit transaction handling breaks SAVEPOINT, so emit BEGIN ourselves.
    # sqlite ignores FOR UPDATE; IMMEDIATE takes the write lock up front instead.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(url: str, echo: bool = False):
    engine = create_async_engine(url, echo=echo)
    if engine.dialect.name == "sqlite":
        _sqlite_transactions(engine)
    return engine


def make_session_factory(engine):
    return async_sessionmaker(bind=engine,class_=AsyncSession,expire_on_commit=False)


async_engine=make_engine(DATABASE_URL,echo=config_settings.DB_ECHO)

async_session=make_session_factory(async_engine)
