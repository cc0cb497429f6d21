"""Global error handler for the bot."""

import logging
import traceback

from telegram import Update
from telegram.ext import ContextTypes

logger = logging.getLogger(__name__)


def describe_error(error: BaseException | None) -> str:
    """Pick the message shown to the owner for an error."""
    text = str(error)

    if "Timed out" in text or "Timeout" in text:
        return "⏱️ Request timed out.\n\nPlease try again in a moment."
    if "Network" in text:
        return "🌐 Network error.\n\nPlease check your connection and try again."
    if "Bad Request" in text:
        return "❌ Invalid request.\n\nPlease check your command and try again. Use /help for examples."

    return (
        "😅 Oops! Something went wrong.\n\n"
        "The error has been logged. Please try again or use /help for assistance."
    )


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in the bot."""
    # Log the error
    logger.error("Exception while handling an update:", exc_info=context.error)

    if context.error is not None:
        tb_list = traceback.format_exception(None, context.error, context.error.__traceback__)
        logger.debug(f"Traceback:\n{''.join(tb_list)}")

    # Try to notify the user
    if isinstance(update, Update) and update.effective_message:
        try:
            await update.effective_message.reply_text(describe_error(context.error))
        except Exception as e:
            logger.error(f"Failed to send error message to user: {e}")
