import json
from unittest.mock import ANY, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

import main
from pipeline.runner import IngestionRunResult


def test_load_raw_postings_accepts_list_and_wrapped(tmp_path):
    as_list = tmp_path / "list.json"
    as_list.write_text(json.dumps([{"title": "Graduate Analyst"}]))
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"jobs": [{"title": "Graduate Analyst"}, {"title": "Intern"}]}))

    assert len(main.load_raw_postings(str(as_list))) == 1
    assert len(main.load_raw_postings(str(wrapped))) == 2


def test_load_raw_postings_rejects_scalar(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps("nope"))

    with pytest.raises(ValueError):
        main.load_raw_postings(str(path))


def test_parser_subcommands():
    parser = main.build_parser()

    args = parser.parse_args(["--run-id", "abc", "ingest", "--input", "postings.json"])
    assert (args.command, args.input, args.run_id) == ("ingest", "postings.json", "abc")

    args = parser.parse_args(["deactivate-stale", "--days", "14"])
    assert args.days == 14

    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_ingest_exit_codes(tmp_path):
    ctx = MagicMock()
    path = tmp_path / "postings.json"
    path.write_text("[]")
    args = main.build_parser().parse_args(["ingest", "--input", str(path)])

    with patch("main.run_ingestion", return_value=IngestionRunResult(success=False, run_id="r")):
        assert main.cmd_ingest(ctx, args) == 1
    with patch("main.run_ingestion", return_value=IngestionRunResult(success=True, run_id="r")):
        assert main.cmd_ingest(ctx, args) == 0

    missing = main.build_parser().parse_args(["ingest", "--input", str(tmp_path / "missing.json")])
    assert main.cmd_ingest(ctx, missing) == 2


def test_match_without_profiles_file_is_usage_error():
    ctx = MagicMock()
    ctx.config.matching.profiles_file = None
    args = main.build_parser().parse_args(["match"])

    assert main.cmd_match(ctx, args) == 2


def _store_down():
    return OperationalError("SELECT 1", {}, Exception("could not connect to server"))


def test_reclassify_store_outage_exits_1():
    ctx = MagicMock()
    ctx.etl_service.reclassify_pool.side_effect = _store_down()
    args = main.build_parser().parse_args(["reclassify"])

    assert main.cmd_reclassify(ctx, args) == 1


def test_deactivate_stale_store_outage_exits_1():
    ctx = MagicMock()
    ctx.etl_service.upsert_store.deactivate_stale.side_effect = _store_down()
    args = main.build_parser().parse_args(["deactivate-stale", "--days", "14"])

    assert main.cmd_deactivate_stale(ctx, args) == 1

    ctx.etl_service.upsert_store.deactivate_stale.side_effect = None
    assert main.cmd_deactivate_stale(ctx, args) == 0
    ctx.etl_service.upsert_store.deactivate_stale.assert_called_with(14, run_id=ANY)
