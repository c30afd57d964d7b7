"""Message catalogues and locale resolution for framework-generated text.

Templates use :meth:`str.format` placeholders (``{commands}``).  Lookups fall
back from the requested locale to the default locale and finally to the key
itself, so a missing translation never raises.
"""

from core.logger import TgrouteLogger

logger = TgrouteLogger.get_logger()

FALLBACK_LOCALE = "en"

_EN: dict[str, str] = {
    "system.dispatch.callback_query.error_missing_route.error":
        "Unable to dispatch Callback Query due to missing route DETECTED.",
    "system.dispatch.callback_query.error_missing_route.solution":
        "For most of the time, this happens when the corresponding handler wasn't registered properly "
        "through on_callback_query(...) or the dispatcher failed to match it, please check the registered "
        "handlers and their routes and then try again.",
    "system.dispatch.callback_query.error_missing_action_data.error":
        "Unable to dispatch Callback Query due to missing action data DETECTED.",
    "system.dispatch.callback_query.error_missing_action_data.solution":
        "For most of the time, this happens when the action data stored for the callback query is either "
        "empty, expired, or failed to fetch from the store, please flush the corresponding keys and try again.",
    "system.dispatch.callback_query.invalid_action_data.try_again":
        "Sorry, this operation cannot be performed as it is invalid. "
        "Please initiate another session of operation and try again.",
    "system.commands.groups.basic.name": "Basic Commands",
    "system.commands.groups.other.name": "Other Commands",
    "system.commands.groups.basic.commands.start.help": "Begin interacting with the bot",
    "system.commands.groups.basic.commands.help.help": "Display help information",
    "system.commands.groups.basic.commands.help.message": "Here are the available commands:\n\n{commands}",
    "system.commands.groups.basic.commands.cancel.help": "Cancel any ongoing operations.",
    "system.commands.groups.basic.commands.cancel.already_cancelled_all": "No ongoing operations to cancel",
}

_ZH_CN: dict[str, str] = {
    "system.dispatch.callback_query.error_missing_route.error": "检测到回调查询缺少路由，无法分发。",
    "system.dispatch.callback_query.error_missing_route.solution":
        "通常是因为对应的处理函数没有通过 on_callback_query(...) 正确注册，或分发器未能匹配到它，"
        "请检查已注册的处理函数及其路由后重试。",
    "system.dispatch.callback_query.error_missing_action_data.error": "检测到回调查询缺少操作数据，无法分发。",
    "system.dispatch.callback_query.error_missing_action_data.solution":
        "通常是因为回调查询对应的操作数据为空、已过期或读取失败，请清理相关缓存键后重试。",
    "system.dispatch.callback_query.invalid_action_data.try_again": "抱歉，该操作无效，无法执行。请重新发起操作后再试。",
    "system.commands.groups.basic.name": "基础命令",
    "system.commands.groups.other.name": "其他命令",
    "system.commands.groups.basic.commands.start.help": "开始与机器人交互",
    "system.commands.groups.basic.commands.help.help": "显示帮助信息",
    "system.commands.groups.basic.commands.help.message": "以下是可用的命令：\n\n{commands}",
    "system.commands.groups.basic.commands.cancel.help": "取消正在进行的操作",
    "system.commands.groups.basic.commands.cancel.already_cancelled_all": "没有需要取消的操作",
}

# Primary language subtag → catalogue name, for tags without an exact match.
_LANGUAGE_ALIASES: dict[str, str] = {
    "zh": "zh_cn",
    "zh_hans": "zh_cn",
    "zh_sg": "zh_cn",
}


class I18n:
    """Locale-aware lookup over a set of message catalogues.

    Extra catalogues (or overrides of the built-in keys) can be merged with
    :meth:`register`.
    """

    def __init__(self, default_locale: str = FALLBACK_LOCALE) -> None:
        self._catalogues: dict[str, dict[str, str]] = {
            "en": dict(_EN),
            "zh_cn": dict(_ZH_CN),
        }
        self.default_locale = self.normalize(default_locale) or FALLBACK_LOCALE

    def register(self, locale: str, messages: dict[str, str]) -> None:
        """Merge *messages* into the catalogue for *locale*."""
        name = locale.strip().lower().replace("-", "_")
        self._catalogues.setdefault(name, {}).update(messages)

    def normalize(self, locale: str | None) -> str | None:
        """Map a client language tag (``zh-hans``, ``en-US``…) to a catalogue name.

        Returns ``None`` when no catalogue matches.
        """
        if not locale:
            return None
        tag = locale.strip().lower().replace("-", "_")
        if tag in self._catalogues:
            return tag
        if tag in _LANGUAGE_ALIASES:
            return _LANGUAGE_ALIASES[tag]
        primary = tag.split("_", 1)[0]
        if primary in self._catalogues:
            return primary
        return _LANGUAGE_ALIASES.get(primary)

    def translate(self, key: str, locale: str | None = None, **args: object) -> str:
        """Return the message for *key* in *locale*, formatted with *args*."""
        name = self.normalize(locale) or self.default_locale
        template = self._catalogues.get(name, {}).get(key)
        if template is None:
            template = self._catalogues.get(self.default_locale, {}).get(key)
        if template is None:
            logger.warning("Missing translation", extra={"key": key, "locale": name})
            return key
        if not args:
            return template
        try:
            return template.format(**args)
        except (KeyError, IndexError) as exc:
            logger.error("Translation arguments do not match template", extra={"key": key, "locale": name, "error": str(exc)})
            return template
