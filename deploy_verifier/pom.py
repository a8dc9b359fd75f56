"""
Maven project descriptor (pom.xml) reading and editing.
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union
from xml.etree import ElementTree

from deploy_verifier.errors import SetupError

logger = logging.getLogger(__name__)

POM_NS = "http://maven.apache.org/POM/4.0.0"
ElementTree.register_namespace("", POM_NS)

# Annotation sections of the plugin configuration: every generated resource and
# the pod template, so that redeployed pods can be told apart.
ANNOTATION_SECTIONS = ("all", "pod")


def namespace_of(element: ElementTree.Element) -> str:
    """XML namespace of an element, empty for unqualified descriptors."""
    if element.tag.startswith("{"):
        return element.tag[1:].partition("}")[0]
    return ""


def _tag(name: str, ns: str = POM_NS) -> str:
    return f"{{{ns}}}{name}" if ns else name


def _path(ns: str, *names: str) -> str:
    return "/".join(_tag(n, ns) for n in names)


def _text(element: Optional[ElementTree.Element], name: str, ns: str = POM_NS) -> Optional[str]:
    if element is None:
        return None
    child = element.find(_tag(name, ns))
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _plugin_key(plugin: ElementTree.Element, ns: str = POM_NS) -> str:
    # groupId defaults to org.apache.maven.plugins when omitted
    group_id = _text(plugin, "groupId", ns) or "org.apache.maven.plugins"
    return f"{group_id}:{_text(plugin, 'artifactId', ns)}"


class PomDescriptor:
    """Editable view over a Maven project descriptor.

    Element lookups use the namespace of the document's root, so descriptors
    with and without the POM 4.0.0 namespace read the same way.
    """

    def __init__(self, tree: ElementTree.ElementTree, path: Optional[Path] = None):
        self.tree = tree
        self.path = path
        self.ns = namespace_of(tree.getroot())

    @classmethod
    def read(cls, path: Union[str, Path]) -> "PomDescriptor":
        path = Path(path)
        try:
            tree = ElementTree.parse(path)
        except (OSError, ElementTree.ParseError) as e:
            logger.error(f"❌ Failed to read descriptor {path}: {e}")
            raise SetupError(f"Cannot read project descriptor {path}: {e}") from e
        return cls(tree, path)

    def write(self, path: Union[str, Path, None] = None) -> Path:
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError("No path to write the descriptor to")
        ElementTree.indent(self.tree, space="  ")
        self.tree.write(target, encoding="UTF-8", xml_declaration=True)
        logger.debug(f"Descriptor written to {target}")
        return target

    @property
    def root(self) -> ElementTree.Element:
        return self.tree.getroot()

    def tag(self, name: str) -> str:
        return _tag(name, self.ns)

    def _text(self, element: Optional[ElementTree.Element], name: str) -> Optional[str]:
        return _text(element, name, self.ns)

    def _plugin_key(self, plugin: ElementTree.Element) -> str:
        return _plugin_key(plugin, self.ns)

    @property
    def artifact_id(self) -> str:
        artifact_id = self._text(self.root, "artifactId")
        if not artifact_id:
            raise SetupError(f"Project descriptor {self.path or ''} has no artifactId")
        return artifact_id

    @property
    def version(self) -> Optional[str]:
        # Falls back to the parent version, as Maven does
        return self._text(self.root, "version") or self._text(self.root.find(self.tag("parent")), "version")

    def _build_plugins(self, owner: ElementTree.Element) -> List[ElementTree.Element]:
        return owner.findall(_path(self.ns, "build", "plugins", "plugin"))

    def _profiles(self) -> List[ElementTree.Element]:
        return self.root.findall(_path(self.ns, "profiles", "profile"))

    def plugin_versions(self) -> Dict[str, Optional[str]]:
        """Plugin key -> version across the main build and all profiles."""
        versions = {}
        for owner in [self.root] + self._profiles():
            for plugin in self._build_plugins(owner):
                versions.setdefault(self._plugin_key(plugin), self._text(plugin, "version"))
        return versions

    def _find_plugins(self, plugin_key: str) -> List[ElementTree.Element]:
        main = [p for p in self._build_plugins(self.root) if self._plugin_key(p) == plugin_key]
        if main:
            return main
        found = []
        for profile in self._profiles():
            found.extend(p for p in self._build_plugins(profile) if self._plugin_key(p) == plugin_key)
        return found

    def set_plugin_version(self, plugin_key: str, version: str) -> int:
        """Pin the plugin in the main build, else in every profile declaring it.

        Returns the number of plugin declarations updated.
        """
        plugins = self._find_plugins(plugin_key)
        for plugin in plugins:
            version_el = plugin.find(self.tag("version"))
            if version_el is None:
                version_el = ElementTree.SubElement(plugin, self.tag("version"))
            version_el.text = version
        if not plugins:
            logger.warning(f"Plugin {plugin_key} not declared in {self.path or 'descriptor'}")
        else:
            logger.info(f"Pinned {plugin_key} to {version} ({len(plugins)} declaration(s))")
        return len(plugins)

    def add_dependency(self, group_id: str, artifact_id: str, version: str) -> None:
        if f"{group_id}:{artifact_id}:{version}" in self.dependencies():
            logger.info(f"Dependency {group_id}:{artifact_id}:{version} already declared")
            return
        dependencies = self.root.find(self.tag("dependencies"))
        if dependencies is None:
            dependencies = ElementTree.SubElement(self.root, self.tag("dependencies"))
        dependency = ElementTree.SubElement(dependencies, self.tag("dependency"))
        for name, value in (("groupId", group_id), ("artifactId", artifact_id), ("version", version)):
            ElementTree.SubElement(dependency, self.tag(name)).text = value
        logger.info(f"Added dependency {group_id}:{artifact_id}:{version}")

    def dependencies(self) -> List[str]:
        return [
            f"{self._text(d, 'groupId')}:{self._text(d, 'artifactId')}:{self._text(d, 'version')}"
            for d in self.root.findall(_path(self.ns, "dependencies", "dependency"))
        ]

    def profile(self, profile_id: str) -> ElementTree.Element:
        for profile in self._profiles():
            if self._text(profile, "id") == profile_id:
                return profile
        raise SetupError(f"No {profile_id} profile found in project's pom.xml")

    def _profile_plugins(self, profile_id: str, plugin_key: str) -> List[ElementTree.Element]:
        profile = self.profile(profile_id)
        plugins = [p for p in self._build_plugins(profile) if self._plugin_key(p) == plugin_key]
        if not plugins:
            raise SetupError(f"Plugin {plugin_key} not declared in profile {profile_id}")
        return plugins

    def plugin_configuration(self, profile_id: str, plugin_key: str) -> Optional[ElementTree.Element]:
        for plugin in self._build_plugins(self.profile(profile_id)):
            if self._plugin_key(plugin) == plugin_key:
                return plugin.find(self.tag("configuration"))
        return None

    def _annotations_configuration(self, key: str, value: str) -> ElementTree.Element:
        configuration = ElementTree.Element(self.tag("configuration"))
        resources = ElementTree.SubElement(configuration, self.tag("resources"))
        annotations = ElementTree.SubElement(resources, self.tag("annotations"))
        for section in ANNOTATION_SECTIONS:
            prop = ElementTree.SubElement(ElementTree.SubElement(annotations, self.tag(section)), self.tag("property"))
            ElementTree.SubElement(prop, self.tag("name")).text = key
            ElementTree.SubElement(prop, self.tag("value")).text = value
        return configuration

    def add_redeployment_annotations(self, profile_id: str, plugin_key: str, key: str, value: str) -> None:
        """Replace the plugin's configuration in a profile with annotations key=value."""
        for plugin in self._profile_plugins(profile_id, plugin_key):
            old_config = plugin.find(self.tag("configuration"))
            if old_config is not None:
                plugin.remove(old_config)
            plugin.append(self._annotations_configuration(key, value))
        logger.info(f"Added redeployment annotation {key}={value} to {plugin_key} in profile {profile_id}")
