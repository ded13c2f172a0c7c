from __future__ import annotations

import io
import typing as tp
import xml.sax
from xml.sax.handler import EntityResolver as SaxEntityResolver, feature_external_ges
from xml.sax.saxutils import XMLFilterBase
from xml.sax.xmlreader import InputSource, XMLReader

from refcache._core.models import ResolvedEntity
from refcache._sync._resolver import EntityResolver

__all__ = ("CachingEntityResolver", "CachingXMLReader")


class CachingEntityResolver(SaxEntityResolver):
    """
    A SAX entity resolver that serves external entities through the cache.

    Entities without a system id, and those the cache does not handle or
    cannot resolve, are passed to the wrapped resolver, which by default
    returns the system id so the parser opens it itself.

    Example:
    ```python
    import xml.sax
    from xml.sax.handler import feature_external_ges

    parser = xml.sax.make_parser()
    parser.setFeature(feature_external_ges, True)
    parser.setEntityResolver(CachingEntityResolver())
    ```
    """

    def __init__(
        self,
        resolver: tp.Optional[EntityResolver] = None,
        delegate: tp.Optional[SaxEntityResolver] = None,
    ) -> None:
        self.resolver = resolver if resolver is not None else EntityResolver()
        self.delegate = delegate if delegate is not None else SaxEntityResolver()

    def resolveEntity(self, publicId: tp.Optional[str], systemId: tp.Optional[str]) -> tp.Union[InputSource, str, None]:
        if not systemId:
            return self.delegate.resolveEntity(publicId, systemId)

        result = self.resolver.resolve(publicId, systemId)
        if not isinstance(result, ResolvedEntity):
            return self.delegate.resolveEntity(publicId, systemId)

        source = InputSource(systemId)
        source.setByteStream(io.BytesIO(result.content))
        source.setPublicId(result.identifier_hint)
        return source


class CachingXMLReader(XMLFilterBase):
    """
    An XML reader that loads the document itself and its external entities through the cache.

    Whatever entity resolver is set on the reader is kept as the fallback of
    a `CachingEntityResolver`, so `getEntityResolver()` always returns the
    caching one. External general entities are loaded by default.

    :param parent: The reader doing the actual parsing, defaults to `xml.sax.make_parser()`
    :type parent: tp.Optional[XMLReader], optional
    :param resolver: Resolver backing the cache, defaults to `EntityResolver()`
    :type resolver: tp.Optional[EntityResolver], optional
    """

    def __init__(self, parent: tp.Optional[XMLReader] = None, resolver: tp.Optional[EntityResolver] = None) -> None:
        super().__init__(parent if parent is not None else xml.sax.make_parser())
        self.resolver = resolver if resolver is not None else EntityResolver()
        self.setEntityResolver(None)
        self.setFeature(feature_external_ges, True)

    def setEntityResolver(self, resolver: tp.Optional[SaxEntityResolver]) -> None:
        if not isinstance(resolver, CachingEntityResolver):
            resolver = CachingEntityResolver(self.resolver, delegate=resolver)
        super().setEntityResolver(resolver)

    def parse(self, source: tp.Any) -> None:
        """
        Parses a document, reading it from the cache when it is given by system id.

        `source` is anything `xml.sax` parsers accept. An `InputSource` without
        a stream goes through the entity resolver first; when the cache does
        not handle it the parser opens it as usual. File names, URL strings
        and open files are passed through unchanged.
        """
        if isinstance(source, InputSource) and source.getByteStream() is None and source.getCharacterStream() is None:
            resolved = self.getEntityResolver().resolveEntity(source.getPublicId(), source.getSystemId())
            if isinstance(resolved, InputSource):
                source = resolved
        super().parse(source)
