import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# 모든 모델 클래스가 상속받을 Base 클래스
# 이 클래스를 상속받아 모델을 정의하면, SQLAlchemy가 테이블을 인식합니다.
Base = declarative_base()


class Database:
    """
    프로젝트 저장소 연결을 관리합니다.

    전역 객체로 두지 않고 명시적으로 생성하여 필요한 곳에 주입합니다.
    connect()는 처음 한 번만 엔진을 만들고 이후에는 재사용하며,
    with 블록으로 사용하면 블록 종료 시 close()가 호출됩니다.
    """

    def __init__(self, url: str):
        self.url = url
        self.engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def connect(self) -> Engine:
        if self.engine is not None:
            return self.engine

        connect_args = {}
        if self.url.startswith("sqlite"):
            # SQLite는 요청 스레드마다 세션을 열기 때문에 필요합니다.
            connect_args["check_same_thread"] = False

        self.engine = create_engine(self.url, connect_args=connect_args)
        # autocommit=False, autoflush=False로 설정하여, 명시적으로 commit을 호출해야 DB에 반영됩니다.
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        from src.database import models  # noqa: F401  테이블 등록
        Base.metadata.create_all(bind=self.engine)
        logger.info("Connected to project store: %s", self.engine.url.render_as_string(hide_password=True))
        return self.engine

    def ping(self) -> bool:
        """저장소에 간단한 쿼리를 보내 연결 상태를 확인합니다."""
        if self.engine is None:
            return False
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("Project store ping failed: %s", e)
            return False

    @contextmanager
    def session(self) -> Iterator[Session]:
        self.connect()
        db_session = self._session_factory()
        try:
            yield db_session
        finally:
            db_session.close()

    def close(self):
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self._session_factory = None

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
