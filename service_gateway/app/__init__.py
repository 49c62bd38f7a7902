"""
Registry Gateway Service package.

The gateway resolves npm package metadata and tarballs on behalf of
clients, routing each lookup to the private or the public registry:
- Upstream selection: private-scope tokens decide the owning registry
- Registry client: one keep-alive pool per registry class
- Caching: byte-bounded in-process cache with negative entries
- Tarballs: streamed and decompressed, never cached

Structure:
- app.main: FastAPI app, routes, and singleton wiring.
- app.adapters: Registry HTTP client and tarball streams.
- app.caching: Metadata cache.
- app.domain: Models and upstream selection.
- app.packages: Metadata and tarball resolvers.
"""
