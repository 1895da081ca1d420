from pathlib import Path
from typing import Optional

from .errors import PromptTemplateError
from .logging_config import logger
from .settings import settings


def load_prompt_template(
    filename: Optional[str] = None, *, prompts_dir: Optional[Path] = None
) -> str:
    """
    Read a prompt template from the prompts directory.

    The file is re-read on every call so templates can be edited without
    restarting the service.
    """
    base_dir = Path(prompts_dir or settings.prompts_dir).resolve()
    name = filename or settings.prompt_template_file
    path = (base_dir / name).resolve()

    if base_dir not in path.parents:
        logger.warning("Refusing prompt template outside %s: %r", base_dir, name)
        raise PromptTemplateError("无法读取提示词模板", details={"template": name})

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("读取提示词文件失败: %s (%s)", path, exc)
        raise PromptTemplateError(
            "无法读取提示词模板", details={"template": name}
        ) from exc

    if not content.strip():
        logger.error("Prompt template %s is empty", path)
        raise PromptTemplateError("无法读取提示词模板", details={"template": name})
    return content


__all__ = ["load_prompt_template"]
