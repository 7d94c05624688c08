'''plugins.py: Contains the registry of converter and structure plugins run after decoding.'''

import logging

logger = logging.getLogger(__name__)


class MessagePlugin:
    '''
    Base class for converters of one or more decoded message lists.

    Attributes:
        name: Unique name within a registry.
        supported_messages: Message keys handled, e.g. ('record_mesgs',).
        priority: Lower runs first; only the first converter for a key is used.
    '''
    name = None
    supported_messages = ()
    priority = 100

    def convert(self, messages: list, context: dict):
        '''Returns the converted list, or None to keep messages unchanged.'''
        raise NotImplementedError


class StructurePlugin:
    '''
    Base class for plugins that reshape the whole set of decoded messages.

    Structure plugins run after every converter, in priority order. Each sees
    all message lists and returns the keys it replaces.

    Attributes:
        name: Unique name within a registry.
        priority: Lower runs first.
    '''
    name = None
    supported_messages = ()
    priority = 100

    def structure(self, messages: dict, context: dict) -> dict:
        '''Returns message keys -> new lists, empty to change nothing.'''
        raise NotImplementedError


class PluginRegistry:
    def __init__(self, plugins=None):
        self._plugins = []
        for plugin in plugins or ():
            self.register(plugin)

    @property
    def plugins(self) -> list:
        return list(self._plugins)

    def register(self, plugin):
        '''
        Raises:
            ValueError: A plugin with the same name is already registered.
        '''
        if any(registered.name == plugin.name for registered in self._plugins):
            raise ValueError(f"FIT Runtime Error plugin '{plugin.name}' is already registered")
        self._plugins.append(plugin)
        self._plugins.sort(key=lambda registered: registered.priority)
        logger.debug("Registered plugin '%s' (priority %d) for %s", plugin.name, plugin.priority,
                     ', '.join(plugin.supported_messages) or 'all messages')

    def unregister(self, name: str) -> bool:
        for index, plugin in enumerate(self._plugins):
            if plugin.name == name:
                del self._plugins[index]
                return True
        return False

    def converters_for(self, key) -> list:
        return [plugin for plugin in self._plugins
                if isinstance(plugin, MessagePlugin) and key in plugin.supported_messages]

    def structure_plugins(self) -> list:
        return [plugin for plugin in self._plugins if isinstance(plugin, StructurePlugin)]

    def apply(self, messages: dict, context: dict = None) -> dict:
        '''
        Runs the first converter registered for each message key, then every
        structure plugin over the converted messages.

        A plugin that raises is skipped: the error is logged, appended to
        context['errors'] and the messages are kept as they were.

        Returns:
            dict: A new dict with converted lists where a converter applied and
                the keys replaced by structure plugins.
        '''
        if context is None:
            context = {}
        context.setdefault('errors', [])

        converted = {}
        for key, mesgs in messages.items():
            converters = self.converters_for(key)
            if not mesgs or not converters:
                converted[key] = mesgs
                continue

            converter = converters[0]
            try:
                result = converter.convert(mesgs, context)
            except Exception as error:
                logger.warning("Plugin '%s' failed on '%s': %s", converter.name, key, error)
                context['errors'].append(error)
                result = None
            converted[key] = mesgs if result is None else result
        return self._structure(converted, context)

    def _structure(self, messages: dict, context: dict) -> dict:
        structured = dict(messages)
        for plugin in self.structure_plugins():
            try:
                structured.update(plugin.structure(messages, context) or {})
            except Exception as error:
                logger.warning("Plugin '%s' failed to structure messages: %s", plugin.name, error)
                context['errors'].append(error)
        return structured
