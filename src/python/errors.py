"""Exception taxonomy for the conversion pipeline."""


class ConversionError(Exception):
    """Base class for every error raised by lcscbridge."""


class InputError(ConversionError):
    """Invalid identifier or missing conversion selection."""


class RemoteError(ConversionError):
    """Request failure, bad response or unusable payload from EasyEDA."""


class ComponentNotFound(RemoteError):
    def __init__(self, identifier: str):
        super().__init__(f"Component not found: {identifier}")
        self.identifier = identifier


class GeometryError(ConversionError):
    """Shape data could not be turned into any usable primitive."""


class MalformedRecord(GeometryError):
    """A single shape record has unparseable fields. Recovered by skipping it."""


class ArcGeometryError(GeometryError):
    """Degenerate elliptical arc (zero radius, coincident endpoints) or bad arc path."""


class MeshError(ConversionError):
    """A downloaded 3D model could not be converted."""


class LibraryError(ConversionError):
    """Library artifact I/O or structure failure."""


class DuplicateComponent(LibraryError):
    def __init__(self, key: str):
        super().__init__(f"Component {key} already exists in library (use --overwrite)")
        self.key = key
