"""flags ライブラリのテスト共通フィクスチャ"""

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from k1s0_flags import Config, FileRetriever, FlagEngine, FlagsClient

TESTDATA = Path(__file__).parent / "testdata"

NEW_FLAG_YAML = """
ff-test:
  metadata:
    description: test
  variations:
    e: 2.71828
  defaultRule:
    variation: e
"""

EngineFactory = Callable[..., FlagEngine]


@pytest.fixture
def make_engine() -> Iterator[EngineFactory]:
    """テスト終了時に自動で close される FlagEngine を作るファクトリー。"""
    engines: list[FlagEngine] = []

    def factory(
        path: Path, file_format: str = "", polling_interval: float = 600.0
    ) -> FlagEngine:
        engine = FlagEngine(
            Config(
                polling_interval=polling_interval,
                retrievers=[FileRetriever(path)],
                file_format=file_format,
            )
        )
        engines.append(engine)
        return engine

    yield factory
    for engine in engines:
        engine.close()


@pytest.fixture(params=["yaml", "json"])
def engine(request: pytest.FixtureRequest, make_engine: EngineFactory) -> FlagEngine:
    """YAML / JSON 両方のフィクスチャで同じテストを実行する。"""
    return make_engine(TESTDATA / f"flags.{request.param}", file_format=request.param)


@pytest.fixture
def client(engine: FlagEngine) -> FlagsClient:
    return FlagsClient(engine)


@pytest.fixture
def flags_copy(tmp_path: Path) -> Path:
    """書き換え可能な YAML フィクスチャのコピー。"""
    path = tmp_path / "flags.yaml"
    path.write_bytes((TESTDATA / "flags.yaml").read_bytes())
    return path
