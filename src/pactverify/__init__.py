"""pactverify: provider-side verification of consumer-driven contracts."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("pactverify")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from pactverify.api import verify_pact, load_pact, PactLoadError
from pactverify.codes import FailureCode, VerificationType
from pactverify.config import ConsumerInfo, ProviderInfo, VerifierConfig
from pactverify.contracts import InteractionReport, VerificationReport
from pactverify.kernel.provider_methods import ProviderMessage, ProviderMethodRegistry, provider_method

__all__ = [
    "__version__",
    "verify_pact",
    "load_pact",
    "PactLoadError",
    "FailureCode",
    "VerificationType",
    "ConsumerInfo",
    "ProviderInfo",
    "VerifierConfig",
    "InteractionReport",
    "VerificationReport",
    "ProviderMessage",
    "ProviderMethodRegistry",
    "provider_method",
]
