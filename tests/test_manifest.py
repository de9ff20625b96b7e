import requests

from fakes import write_tree
import wpdiffcheck.manifest as manifest_module
from wpdiffcheck.manifest import (
    PluginManifest,
    fetch_manifest,
    file_exists_case_sensitive,
    find_missing_files,
)

URL = "https://downloads.wordpress.org/plugin-checksums/akismet/5.3.json"


def test_fetch_manifest(session):
    session.add_json(URL, {"plugin": "akismet", "version": "5.3", "files": {"akismet.php": {"md5": "x"}}})
    manifest = fetch_manifest(session, "akismet", "5.3", 30)
    assert manifest == PluginManifest("akismet", "5.3", {"akismet.php": {"md5": "x"}})
    assert session.calls[0]["timeout"] == 30


def test_fetch_manifest_not_found(session):
    assert fetch_manifest(session, "akismet", "5.3", 30) is None


def test_fetch_manifest_timeout_counts_as_failure(session):
    session.fail(URL, requests.Timeout("read timed out"))
    assert fetch_manifest(session, "akismet", "5.3", 30) is None


def test_fetch_manifest_bad_json(session):
    session.add(URL, 200, "<html>")
    assert fetch_manifest(session, "akismet", "5.3", 30) is None


def test_fetch_manifest_without_files_is_empty(session):
    session.add_json(URL, {"files": []})
    manifest = fetch_manifest(session, "akismet", "5.3", 30)
    assert manifest is not None
    assert manifest.files == {}


def test_file_exists_case_sensitive(tmp_path):
    write_tree(tmp_path, {"README.txt": "x"})
    assert file_exists_case_sensitive(str(tmp_path / "README.txt"))
    assert not file_exists_case_sensitive(str(tmp_path / "readme.txt"))
    assert not file_exists_case_sensitive(str(tmp_path / "nope.txt"))


def test_find_missing_files_checks_every_path_component(tmp_path):
    write_tree(tmp_path, {
        "akismet.php": "<?php",
        "views/Config.php": "<?php",
        "_inc/akismet.js": "//",
    })
    manifest = PluginManifest("akismet", "5.3", {
        "akismet.php": {},
        "views/config.php": {},
        "_inc/akismet.js": {},
        "_inc/akismet.css": {},
        "Views/Config.php": {},
    })
    assert find_missing_files(str(tmp_path), manifest) == [
        "views/config.php",
        "_inc/akismet.css",
        "Views/Config.php",
    ]


def test_find_missing_files_lists_each_directory_once(tmp_path, monkeypatch):
    files = {f"includes/sub/file{i}.php": "<?php" for i in range(20)}
    write_tree(tmp_path, files)
    manifest = PluginManifest("big", "1.0", dict.fromkeys(list(files) + ["includes/sub/gone.php"], {}))
    listed = []
    real_listdir = manifest_module.os.listdir

    def counting_listdir(path):
        listed.append(path)
        return real_listdir(path)

    monkeypatch.setattr(manifest_module.os, "listdir", counting_listdir)
    assert find_missing_files(str(tmp_path), manifest) == ["includes/sub/gone.php"]
    assert sorted(listed) == sorted({str(tmp_path), str(tmp_path / "includes"), str(tmp_path / "includes" / "sub")})
