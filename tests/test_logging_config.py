# tests/test_logging_config.py
import logging

from loguru import logger

from app.core.logging_config import InterceptHandler, mask_phone, setup_logging


def test_mask_phone_keeps_last_four_digits():
    assert mask_phone("+919812345678") == "***5678"
    assert mask_phone("") == "<none>"
    assert mask_phone(None) == "<none>"


def test_stdlib_logging_is_routed_to_loguru():
    setup_logging()
    captured = []
    sink_id = logger.add(lambda message: captured.append(message.record["message"]), level="INFO")
    try:
        logging.getLogger("conversation_service").info("hello from stdlib")
    finally:
        logger.remove(sink_id)

    assert any(isinstance(h, InterceptHandler) for h in logging.getLogger().handlers)
    assert "hello from stdlib" in captured
