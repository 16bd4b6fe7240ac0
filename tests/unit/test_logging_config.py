import logging
import os
import tempfile
import unittest

from xcstrings_translator.logging_config import PACKAGE_LOGGER_NAME, TqdmLoggingHandler, setup_logger


class TestSetupLogger(unittest.TestCase):

    def setUp(self):
        logger = logging.getLogger(PACKAGE_LOGGER_NAME)
        saved = (list(logger.handlers), logger.level, logger.propagate)

        def restore():
            for handler in logger.handlers:
                handler.close()
            logger.handlers[:] = saved[0]
            logger.setLevel(saved[1])
            logger.propagate = saved[2]

        self.addCleanup(restore)

    def test_console_only(self):
        logger = setup_logger("debug", "", True)

        self.assertEqual(logger.name, PACKAGE_LOGGER_NAME)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertEqual(len(logger.handlers), 1)
        self.assertIsInstance(logger.handlers[0], TqdmLoggingHandler)

    def test_file_handler_creates_directory(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            log_path = os.path.join(tmp_dir, "logs", "run.log")
            logger = setup_logger("INFO", log_path, False)
            logging.getLogger(f"{PACKAGE_LOGGER_NAME}.reconciliation").info("Removed 1 stale strings")
            for handler in logger.handlers:
                handler.flush()

            with open(log_path, encoding="utf-8") as f:
                self.assertIn("INFO - Removed 1 stale strings", f.read())
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

    def test_repeated_setup_does_not_stack_handlers(self):
        setup_logger("INFO", "", True)
        logger = setup_logger("INFO", "", True)
        self.assertEqual(len(logger.handlers), 1)

    def test_unknown_level_falls_back_to_info(self):
        logger = setup_logger("chatty", "", False)
        self.assertEqual(logger.level, logging.INFO)


if __name__ == '__main__':
    unittest.main()
