"""
Tests for the command line interface.
"""

import json

import pytest

from workengine import __version__
from workengine.app import main
from workengine.storage import save_snapshot


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    """Run from an empty directory with no workengine settings."""
    monkeypatch.chdir(tmp_path)
    for name in ("WORKENGINE_BACKEND", "WORKENGINE_DB", "WORKENGINE_SNAPSHOT",
                 "WORKENGINE_REST_URL", "WORKENGINE_REST_KEY", "WORKENGINE_REST_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def snapshot_file(tmp_path, org_snapshot):
    path = tmp_path / "snapshot.json"
    save_snapshot(path, org_snapshot)
    return path


class TestResolve:

    def test_resolve_from_snapshot(self, snapshot_file, capsys):
        main([
            "resolve", "--company", "acme", "--entity-type", "leave_request",
            "--entity-id", "LR-1", "--state", "submitted", "--requested-by", "u-alice",
            "--snapshot", str(snapshot_file),
        ])

        assert capsys.readouterr().out.strip() == "Assignee: u-bob"

    def test_explain(self, snapshot_file, capsys):
        main([
            "resolve", "--company", "acme", "--entity-type", "contract",
            "--entity-id", "c-9", "--state", "legal_review",
            "--snapshot", str(snapshot_file), "--explain",
        ])

        out = capsys.readouterr().out.splitlines()
        assert out == [
            "Assignee: u-admin-b",
            "  line_manager: not applicable",
            "  hr_pool: not applicable",
            "  contract_owner: no candidate",
            "  company_admin: found u-admin-b",
        ]

    def test_unassigned(self, snapshot_file, capsys):
        main([
            "resolve", "--company", "initech", "--entity-type", "task",
            "--entity-id", "T-1", "--state", "open", "--snapshot", str(snapshot_file),
        ])

        assert capsys.readouterr().out.strip() == "Assignee: (none)"

    def test_resolve_from_database(self, tmp_path, snapshot_file, capsys):
        db_path = tmp_path / "relationships.db"
        main(["import-snapshot", "--snapshot", str(snapshot_file), "--db", str(db_path)])
        capsys.readouterr()

        main([
            "resolve", "--company", "acme", "--entity-type", "attendance_request",
            "--entity-id", "AR-1", "--state", "submitted", "--db", str(db_path),
        ])

        assert capsys.readouterr().out.strip() == "Assignee: u-hr-admin"

    def test_backend_from_environment(self, snapshot_file, monkeypatch, capsys):
        monkeypatch.setenv("WORKENGINE_BACKEND", "snapshot")
        monkeypatch.setenv("WORKENGINE_SNAPSHOT", str(snapshot_file))

        main([
            "resolve", "--company", "globex", "--entity-type", "task",
            "--entity-id", "T-1", "--state", "open",
        ])

        assert capsys.readouterr().out.strip() == "Assignee: u-globex-admin"

    def test_missing_database(self, tmp_path):
        with pytest.raises(SystemExit, match="init-db"):
            main([
                "resolve", "--company", "acme", "--entity-type", "task",
                "--entity-id", "T-1", "--state", "open", "--db", str(tmp_path / "nope.db"),
            ])

    def test_rest_backend_needs_url(self):
        with pytest.raises(SystemExit, match="WORKENGINE_REST_URL"):
            main([
                "resolve", "--company", "acme", "--entity-type", "task",
                "--entity-id", "T-1", "--state", "open", "--backend", "rest",
            ])

    @pytest.mark.parametrize("name,value", [
        ("WORKENGINE_BACKEND", "mongo"),
        ("WORKENGINE_REST_TIMEOUT", "soon"),
    ])
    def test_bad_settings_exit_with_message(self, snapshot_file, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(SystemExit, match=f"Invalid configuration: {name}"):
            main([
                "resolve", "--company", "acme", "--entity-type", "task",
                "--entity-id", "T-1", "--state", "open", "--snapshot", str(snapshot_file),
            ])

    def test_blank_company_rejected(self, snapshot_file):
        with pytest.raises(SystemExit, match="company_id"):
            main([
                "resolve", "--company", " ", "--entity-type", "task",
                "--entity-id", "T-1", "--state", "open", "--snapshot", str(snapshot_file),
            ])


class TestValidate:

    def _write(self, tmp_path, data):
        path = tmp_path / "request.json"
        path.write_text(json.dumps(data))
        return path

    def test_valid(self, tmp_path, capsys):
        path = self._write(tmp_path, {
            "companyId": "acme", "entityType": "hr_promotion", "entityId": "P-1", "currentState": "draft",
        })

        main(["validate", "--input", str(path), "--strict"])

        assert capsys.readouterr().out.strip() == "Valid"

    def test_invalid(self, tmp_path, capsys):
        path = self._write(tmp_path, {"company_id": "acme"})

        with pytest.raises(SystemExit) as exc_info:
            main(["validate", "--input", str(path)])

        assert exc_info.value.code == 2
        out = capsys.readouterr().out
        assert "Invalid:" in out
        assert " - Missing required field: entity_type" in out

    def test_strict_rejects_unknown_type(self, tmp_path, capsys):
        path = self._write(tmp_path, {
            "company_id": "acme", "entity_type": "invoice", "entity_id": "I-1", "current_state": "draft",
        })

        main(["validate", "--input", str(path)])
        assert capsys.readouterr().out.strip() == "Valid"

        with pytest.raises(SystemExit):
            main(["validate", "--input", str(path), "--strict"])

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "request.json"
        path.write_text('{"company_id": ')

        with pytest.raises(SystemExit, match="Invalid JSON"):
            main(["validate", "--input", str(path)])

    def test_missing_input(self, tmp_path):
        with pytest.raises(SystemExit, match="not found"):
            main(["validate", "--input", str(tmp_path / "nope.json")])


class TestDatabaseCommands:

    def test_init_db(self, tmp_path, capsys):
        db_path = tmp_path / "data" / "rel.db"

        main(["init-db", "--db", str(db_path)])

        assert db_path.exists()
        assert capsys.readouterr().out.strip() == f"Initialized {db_path}"

    def test_import_snapshot(self, tmp_path, snapshot_file, capsys):
        db_path = tmp_path / "rel.db"

        main(["import-snapshot", "--snapshot", str(snapshot_file), "--db", str(db_path)])

        assert capsys.readouterr().out.strip() == "Done. employees=6 user_roles=7 contracts=3"

    def test_import_invalid_snapshot(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"employees": [{"id": "e-1"}]}))

        with pytest.raises(SystemExit) as exc_info:
            main(["import-snapshot", "--snapshot", str(path), "--db", str(tmp_path / "rel.db")])

        assert exc_info.value.code == 2
        assert "employees[0] missing required field: company_id" in capsys.readouterr().out

    def test_init_db_bad_settings(self, monkeypatch):
        monkeypatch.setenv("WORKENGINE_BACKEND", "mongo")

        with pytest.raises(SystemExit, match="WORKENGINE_BACKEND"):
            main(["init-db"])


class TestMisc:

    def test_version(self, capsys):
        main(["--version"])

        assert capsys.readouterr().out.strip() == __version__

    def test_no_command_prints_help(self, capsys):
        main([])

        assert "usage: workengine" in capsys.readouterr().out
