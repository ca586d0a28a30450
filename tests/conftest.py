from __future__ import annotations

import pathlib

import pytest

SUP_OID = "a2b71d6ee8997eb87b25ab42d566c44f6a32871752c7c73eb5578cb1182f7be0"
WAT_OID = "d3f2dfc28bb4cbc063fb284734c102a38f96e41fa137dd77478015680fffd81e"
EMPTY_OID = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
# valid identifier that nothing in the tests hashes to
BAD_OID = "b2b71d6ee8997eb87b25ab42d566c44f6a32871752c7c73eb5578cb1182f7be0"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "objects"
    path.mkdir()
    return path


@pytest.fixture
def sup_path(store_dir: pathlib.Path) -> pathlib.Path:
    return store_dir / SUP_OID


@pytest.fixture
def stored_sup(sup_path: pathlib.Path) -> pathlib.Path:
    sup_path.write_bytes(b"SUP")
    return sup_path
