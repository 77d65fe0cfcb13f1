import json
import logging

LOG_FORMAT = "%(asctime)s [calcforge] %(levelname)s %(name)s: %(message)s"


def configure_logging(level="INFO"):

    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(h, "_calcforge", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._calcforge = True
        root.addHandler(handler)
    return root


def log_generation_event(logger, prompt, provider, source, spec, reason=None):

    log_data = {
        "prompt": prompt,
        "provider": provider,
        "source": source,
        "title": spec.title,
        "kind": spec.kind.value,
    }

    if source == "model":
        logger.info(json.dumps(log_data, ensure_ascii=False))
    else:
        log_data["reason"] = reason or "unknown"
        logger.warning(json.dumps(log_data, ensure_ascii=False))
