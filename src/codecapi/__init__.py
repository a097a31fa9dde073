"""codecapi -- compile OpenAPI 3 documents into typed, callable API clients.

The compiler turns every schema into a runtime codec and every operation
into a descriptor; the runtime binds those descriptors to an httpx-backed
executor::

    from codecapi import ApiClient, compile_spec, load_document

    client = ApiClient(compile_spec(load_document("openapi.yaml")))
    result = client.pet.getPetById(petId=1)
"""

__version__ = "0.1.0"

from codecapi.compiler import compile_spec  # noqa: E402
from codecapi.parser import load_document  # noqa: E402
from codecapi.runtime import ApiClient, AsyncApiClient  # noqa: E402

__all__ = ["__version__", "compile_spec", "load_document", "ApiClient", "AsyncApiClient"]
