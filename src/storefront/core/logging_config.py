import json
import logging
import sys

from .config import LOG_LEVEL


class NamespaceFilter(logging.Filter):
    def __init__(self, allowed_namespaces=None):
        super().__init__()
        self.allowed_namespaces = allowed_namespaces if allowed_namespaces is not None else []

    def filter(self, record):
        if not self.allowed_namespaces:
            return True # If no namespaces are specified, allow all records
        return any(record.name.startswith(ns) for ns in self.allowed_namespaces)


class ContextFormatter(logging.Formatter):
    """Appends the structured ``context`` passed via ``extra`` to the message.

    Callers log ``logger.info("Order created", extra={"context": {...}})``.
    """

    def format(self, record):
        message = super().format(record)
        context = getattr(record, "context", None)
        if context:
            message = f"{message} | context={json.dumps(context, default=str, sort_keys=True)}"
        return message


log_formatter = ContextFormatter(
    fmt="%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app_logger = logging.getLogger("storefront")
app_logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(log_formatter)

# To only see logs from specific namespaces:
#
# namespace_filter = NamespaceFilter(["storefront.common", "storefront.features.auth"])
# console_handler.addFilter(namespace_filter)
if console_handler not in app_logger.handlers:
    app_logger.addHandler(console_handler)

# Tortoise is chatty at DEBUG; keep it at WARNING unless asked otherwise.
logging.getLogger("tortoise").setLevel(logging.WARNING)
