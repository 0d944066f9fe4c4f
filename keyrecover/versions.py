from colorama import __version__ as __colorama_version
from yaml import __version__ as __yaml_version


dependencies = {
    'colorama': __colorama_version,
    'pyyaml': __yaml_version
}

python_version_tested = [(3, 8), (3, 9), (3, 10), (3, 11), (3, 12)]
