import pytest
from sqlalchemy.orm import sessionmaker
from homedash.db import make_engine
from homedash.models import Base, FamilyMember


@pytest.fixture
def db_session(tmp_path):
    db_url = f"sqlite:///{tmp_path}/test.db"
    engine = make_engine(db_url)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def member(db_session):
    m = FamilyMember(name="Ola", color="#3366ff")
    db_session.add(m)
    db_session.commit()
    return m
