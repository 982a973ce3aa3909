"""
Records passed between the stages of a build.

All records are frozen; a stage that wants to change one returns a copy
made with `model_copy(update=...)`.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Module(Record):
    """A source file reached during dependency collection."""
    path: str
    source: str = ""
    specifiers: List[str] = Field(default_factory=list)
    kind: str = "code"  # "code" or "asset"

    @property
    def is_asset(self) -> bool:
        return self.kind == "asset"


class Asset(Record):
    """A copied asset and the URL pages use to reference it."""
    source_path: str
    hash: str = ""
    output_path: str
    public_path: str


class DependencyResult(Record):
    entry: str
    modules: Dict[str, Module] = Field(default_factory=dict)
    graph: Dict[str, List[str]] = Field(default_factory=dict)
    order: List[str] = Field(default_factory=list)
    assets: List[str] = Field(default_factory=list)
    externals: List[str] = Field(default_factory=list)
    referrers: Dict[str, str] = Field(default_factory=dict)
    manifest: List[Asset] = Field(default_factory=list)

    def asset_urls(self) -> Dict[str, str]:
        """Absolute asset path -> public URL, for assets already copied."""
        return {asset.source_path: asset.public_path for asset in self.manifest}


class ModuleStage(Record):
    """One module on its way through the transform hooks."""
    path: str
    source: str
    transformed: Optional[str] = None
    is_entry: bool = False
    asset_urls: Dict[str, str] = Field(default_factory=dict)

    @property
    def code(self) -> str:
        return self.transformed if self.transformed is not None else self.source


class Bundle(Record):
    entry: str
    code: str
    modules: List[str] = Field(default_factory=list)
    externals: List[str] = Field(default_factory=list)
    assets: List[Asset] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PageResult(Record):
    """A page written to the output directory."""
    source_path: str
    output_path: str
    modules: List[str] = Field(default_factory=list)
    assets: List[Asset] = Field(default_factory=list)


class BuildContext(Record):
    """Read-only settings visible to every plugin hook."""
    entry: str
    output_dir: Optional[str] = None
    assets_dir: str = "assets"
    hash_assets: bool = True
    verbose: bool = False
