import collections
import collections.abc
import threading
import typing

import yaml

import keyrecover


_TYPING_NODE = typing.Dict[str, typing.Any]


class ConfigurationError(keyrecover.ApplicationException):
    """ Exception thrown during configuration update and read. """
    pass


class ConfigNode(collections.defaultdict):
    def __str__(self) -> str:
        return self.__class__.__name__ + '({' + ', '.join((f"{k!s}: {v!s}" for k, v in self.items())) + '})'


class ConfigManager(object):
    """ Tree of configuration values, later loads are merged over earlier ones. """

    def __init__(self):
        self._config = self._create_node()
        self._config_lock = threading.RLock()

    @classmethod
    def _dump_helper(cls, data) -> typing.Dict[str, typing.Any]:
        data_dict = {}

        for key, value in data.items():
            if type(value) is ConfigNode:
                data_dict[key] = cls._dump_helper(value)
            elif type(value) is list:
                data_dict[key] = []

                for element in value:
                    if type(element) is ConfigNode:
                        element = cls._dump_helper(element)

                    data_dict[key].append(element)
            else:
                data_dict[key] = value

        return data_dict

    def dump(self) -> typing.Dict[str, typing.Any]:
        """ Dumps configuration to a dictionary. """
        with self._config_lock:
            return self._dump_helper(self._config)

    def load(self, filename: str) -> None:
        """ Load a YAML file as configuration.

        :param filename: path to YAML file
        :raises ConfigurationError: if the file cannot be read or parsed
        """
        try:
            with open(filename, encoding='utf-8') as file:
                content = yaml.safe_load(file)
        except OSError as exc:
            raise ConfigurationError(f"Unable to read configuration file {filename}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in configuration file {filename}") from exc

        if content is None:
            # Empty file
            return

        if not isinstance(content, collections.abc.Mapping):
            raise ConfigurationError(f"Configuration file {filename} must contain a mapping at the top level")

        self.update(content)

    def update(self, content: typing.Mapping[str, typing.Any]) -> None:
        """ Merge content into the configuration. Mappings are merged recursively, any other value replaces what was
        there before.

        :param content: configuration tree
        """
        content = self._update_helper(dict(content))

        with self._config_lock:
            self._merge_helper(self._config, {k.lower(): v for k, v in content.items()})

    def get(self, key: str, required: bool = False, default: typing.Any = None) -> typing.Any:
        """ Get configuration from provided key. Config is arranged as a tree with a period (.) denoting tree levels.

        :param key: config key
        :param required: if True exception will be raised when value is not found, otherwise default will be returned
        :param default: default value to return when key is not found
        :return:
        """
        with self._config_lock:
            node = self._config
            key_set = key.split('.')

            for node_key in key_set[:-1]:
                if not isinstance(node, collections.abc.Mapping) or node_key not in node:
                    if required:
                        raise KeyError(f"Key node {key} not present in configuration tree ({node_key} not found)")
                    else:
                        return default

                node = node[node_key]

            if not isinstance(node, collections.abc.Mapping) or key_set[-1] not in node:
                if required:
                    raise KeyError(f"Key {key} not present in configuration ({key_set[-1]} not found)")
                else:
                    return default

            return node[key_set[-1]]

    def set(self, key: str, value: typing.Any):
        with self._config_lock:
            node = self._config
            key_set = key.split('.')

            for node_key in key_set[:-1]:
                if not isinstance(node, collections.abc.Mapping) or node_key not in node:
                    node[node_key] = self._create_node()

                node = node[node_key]

            node[key_set[-1]] = value

    def __contains__(self, value):
        try:
            self.get(value, required=True)
            return True
        except KeyError:
            return False

    def __getitem__(self, key):
        try:
            return self.get(key, required=True)
        except KeyError as exc:
            raise ConfigurationError(f"Required configuration {key} missing") from exc

    @classmethod
    def _create_node(cls, content: typing.Optional[_TYPING_NODE] = None) -> ConfigNode:
        """ Generate a ConfigNode with a default factory that creates child ConfigNode nodes as necessary.

        :param content: initial content for this ConfigNode
        :return: empty ConfigNode or ConfigNode loaded with initial content
        """
        d = ConfigNode(cls._create_node)

        if content is not None:
            d.update(content)

        return d

    @classmethod
    def _merge_helper(cls, target: ConfigNode, content: ConfigNode) -> None:
        for label, node in content.items():
            if type(node) is ConfigNode and type(target.get(label)) is ConfigNode:
                cls._merge_helper(target[label], node)
            else:
                target[label] = node

    @classmethod
    def _update_helper(cls, node):
        if isinstance(node, collections.abc.Mapping):
            parent = cls._create_node()

            for label, child in node.items():
                parent[label] = cls._update_helper(child)

            return parent
        elif type(node) is list or type(node) is tuple:
            node = [cls._update_helper(x) for x in node]

        return node
