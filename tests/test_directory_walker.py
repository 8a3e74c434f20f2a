import pytest

from packager.core.directory_walker import DirectoryWalker, walk
from packager.errors import PackagingIOError


@pytest.fixture
def package_tree(tmp_path):
    root = tmp_path / "package"
    (root / "nested" / "deeper").mkdir(parents=True)
    (root / "b.json").write_bytes(b"x" * 10)
    (root / "a.json").write_bytes(b"x" * 5)
    (root / "nested" / "child.yaml").write_bytes(b"x" * 7)
    (root / "nested" / "deeper" / "leaf.txt").write_bytes(b"")
    (root / "z.txt").write_bytes(b"x" * 3)
    return root


def test_walk_is_depth_first_in_sorted_order(package_tree):
    entries = list(DirectoryWalker(package_tree))

    assert [e.relative_path for e in entries] == [
        "a.json",
        "b.json",
        "nested/child.yaml",
        "nested/deeper/leaf.txt",
        "z.txt",
    ]


def test_entries_carry_absolute_path_and_size(package_tree):
    entries = {e.relative_path: e for e in walk(package_tree)}

    assert entries["nested/child.yaml"].absolute_path == package_tree / "nested" / "child.yaml"
    assert entries["nested/child.yaml"].size_bytes == 7
    assert entries["nested/deeper/leaf.txt"].size_bytes == 0


def test_entries_unpack_as_tuples(package_tree):
    relative, absolute, size = next(iter(DirectoryWalker(package_tree)))

    assert relative == "a.json"
    assert absolute.name == "a.json"
    assert size == 5


def test_walker_is_restartable_and_sees_new_files(package_tree):
    walker = DirectoryWalker(package_tree)
    first = [e.relative_path for e in walker]

    (package_tree / "c.json").write_bytes(b"{}")
    second = [e.relative_path for e in walker]

    assert len(second) == len(first) + 1
    assert "c.json" in second


def test_total_size_sums_all_files(package_tree):
    assert DirectoryWalker(package_tree).total_size() == 25


def test_empty_directory_yields_nothing(tmp_path):
    assert list(DirectoryWalker(tmp_path)) == []


def test_excluded_files_are_skipped(package_tree):
    walker = DirectoryWalker(package_tree, exclude=[package_tree / "b.json"])

    assert "b.json" not in [e.relative_path for e in walker]


def test_missing_root_fails_on_iteration(tmp_path):
    walker = DirectoryWalker(tmp_path / "missing")

    with pytest.raises(PackagingIOError) as exc_info:
        list(walker)

    assert exc_info.value.path == str(tmp_path / "missing")
