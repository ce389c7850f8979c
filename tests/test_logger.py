import json
import sys

from loguru import logger

from wallet_gateway.utils.logger import setup_logging


def test_json_file_sink(tmp_path):
    log_file = tmp_path / "logs" / "gateway.log"

    setup_logging("INFO", "json", str(log_file))
    logger.debug("hidden")
    logger.info("registry built")
    logger.remove()
    logger.add(sys.stderr)

    records = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert [r["record"]["message"] for r in records] == ["registry built"]
    assert records[0]["record"]["level"]["name"] == "INFO"
