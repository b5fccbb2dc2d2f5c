"""URL template resolution.

Library URLs may embed the requested version through the placeholder
``${library.<name>.version}``, for example::

    https://repo.example.com/libs/my-lib-${library.my-lib.version}.zip

Placeholders naming other libraries are left untouched.
"""

from __future__ import annotations

import re


def placeholder_for(name: str) -> str:
    """Return the version placeholder for a library name.

    Args:
        name: Library name.

    Returns:
        The literal placeholder string.
    """
    return "${library." + name + ".version}"


def resolve_url(template: str, name: str, version: str) -> str:
    """Substitute the version placeholder of ``name`` in ``template``.

    The library name is matched literally and the version is inserted
    literally, so neither may carry regex syntax into the substitution.

    Args:
        template: URL template.
        name: Library name whose placeholder is replaced.
        version: Requested version string.

    Returns:
        The resolved URL, or the template unchanged if it has no placeholder.
    """
    pattern = re.compile(re.escape(placeholder_for(name)))
    if not pattern.search(template):
        return template
    return pattern.sub(lambda _match: version, template)
