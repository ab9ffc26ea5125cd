# Copyright 2015 The TensorFlow Authors. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""A LazyLoader class, reduced to the read-only use in this package.

Adapted from
https://raw.githubusercontent.com/tensorflow/tensorflow/master/tensorflow/python/util/lazy_loader.py
"""

import importlib
import types

from blocksystems.logging import logger


class LazyLoader(types.ModuleType):
    """Lazily import a module.

    `jax` is an optional dependency only needed for the jax backend, and
    `networkx` is only needed when a system gets flattened.
    """

    def __init__(
        self, local_name, parent_module_globals, name, warning=None, error_message=None
    ):  # pylint: disable=super-init-not-called
        self._ll_local_name = local_name
        self._ll_parent_module_globals = parent_module_globals
        self._ll_warning = warning
        self._ll_error_message = error_message

        super().__init__(name)

    def _load(self):
        """Load the module and insert it into the parent's globals."""
        try:
            module = importlib.import_module(self.__name__)
        except ImportError as e:
            if self._ll_error_message:
                raise ImportError(self._ll_error_message) from e
            raise ImportError(f"Could not import module {self.__name__}") from e
        self._ll_parent_module_globals[self._ll_local_name] = module

        if self._ll_warning:
            logger.warning(self._ll_warning)
            self._ll_warning = None

        # later lookups on a kept reference then skip __getattr__
        self.__dict__.update(module.__dict__)

        return module

    def __getattr__(self, name):
        module = self._load()
        return getattr(module, name)

    def __repr__(self):
        # must not trigger _load
        return f"<LazyLoader {self.__name__} as {self._ll_local_name}>"

    def __dir__(self):
        module = self._load()
        return dir(module)

    def __reduce__(self):
        return importlib.import_module, (self.__name__,)
