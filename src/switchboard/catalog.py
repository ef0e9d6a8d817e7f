"""Built-in backend profiles.

Each profile pairs a wire codec with a prompt formatter and static
metadata (endpoint, default model, fallback model list). Adding a backend
that speaks an existing dialect is a data change here, not new code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from switchboard.formatting import DelimitedFormatter, MessagesFormatter
from switchboard.providers.anthropic import AnthropicCodec
from switchboard.providers.base import BackendProfile
from switchboard.providers.cohere import CohereCodec
from switchboard.providers.completions import AI21Codec, AlephAlphaCodec
from switchboard.providers.gemini import GeminiCodec
from switchboard.providers.huggingface import TextGenerationCodec
from switchboard.providers.llamacpp import LlamaCppCodec
from switchboard.providers.ollama import OllamaCodec, OllamaGenerateCodec
from switchboard.providers.openai import OpenAICompatibleCodec
from switchboard.types import ModelInfo

if TYPE_CHECKING:
    from collections.abc import Iterable

HF_INFERENCE_ENDPOINT = "https://api-inference.huggingface.co/models"
OLLAMA_ENDPOINT = "http://localhost:11434"

_CHAT_WITH_TOOLS = MessagesFormatter(supported_roles=("system", "user", "assistant", "tool"))
_CHAT = MessagesFormatter()
_SYSTEM_FIELD = MessagesFormatter(system_placement="field")


def _models(*items: str | tuple[str, str]) -> tuple[ModelInfo, ...]:
    """Build a static model list from ids or ``(id, name)`` pairs."""
    models = []
    for item in items:
        if isinstance(item, tuple):
            models.append(ModelInfo(id=item[0], name=item[1]))
        else:
            models.append(ModelInfo(id=item))
    return tuple(models)


def _hf_profile(
    provider_id: str,
    display_name: str,
    family: str,
    models: tuple[ModelInfo, ...],
    *,
    website: str,
    description: str,
) -> BackendProfile:
    return BackendProfile(
        provider_id=provider_id,
        display_name=display_name,
        description=description,
        website=website,
        codec=TextGenerationCodec(),
        formatter=DelimitedFormatter(family),
        default_endpoint=HF_INFERENCE_ENDPOINT,
        default_model=models[0].id,
        static_models=models,
    )


def builtin_profiles() -> tuple[BackendProfile, ...]:
    """Return one profile per supported backend."""
    return (
        BackendProfile(
            provider_id="openai",
            display_name="OpenAI",
            description="OpenAI GPT models",
            website="https://openai.com",
            codec=OpenAICompatibleCodec(),
            formatter=_CHAT_WITH_TOOLS,
            default_endpoint="https://api.openai.com/v1",
            default_model="gpt-4o",
            tool_strategy="native",
            static_models=_models(
                ("gpt-4o", "GPT-4o"), ("gpt-4-turbo", "GPT-4 Turbo"), ("gpt-3.5-turbo", "GPT-3.5 Turbo")
            ),
        ),
        BackendProfile(
            provider_id="anthropic",
            display_name="Anthropic",
            description="Anthropic Claude models",
            website="https://anthropic.com",
            codec=AnthropicCodec(),
            formatter=_SYSTEM_FIELD,
            default_endpoint="https://api.anthropic.com",
            default_model="claude-3-opus-20240229",
            tool_strategy="native",
            static_models=_models(
                ("claude-3-opus-20240229", "Claude 3 Opus"),
                ("claude-3-sonnet-20240229", "Claude 3 Sonnet"),
                ("claude-3-haiku-20240307", "Claude 3 Haiku"),
                ("claude-2.1", "Claude 2.1"),
                ("claude-2.0", "Claude 2.0"),
                ("claude-instant-1.2", "Claude Instant 1.2"),
            ),
        ),
        BackendProfile(
            provider_id="googleai",
            display_name="Google AI",
            description="Google Gemini models",
            website="https://ai.google.dev/",
            codec=GeminiCodec(),
            formatter=MessagesFormatter(
                system_placement="field", role_names={"assistant": "model"}
            ),
            default_endpoint="https://generativelanguage.googleapis.com/v1beta",
            default_model="gemini-pro",
            tool_strategy="native",
            static_models=_models(("gemini-pro", "Gemini Pro"), ("gemini-1.5-pro", "Gemini 1.5 Pro")),
        ),
        BackendProfile(
            provider_id="mistralai",
            display_name="Mistral AI",
            description="Mistral AI hosted models",
            website="https://mistral.ai/",
            codec=OpenAICompatibleCodec(),
            formatter=_CHAT_WITH_TOOLS,
            default_endpoint="https://api.mistral.ai/v1",
            default_model="mistral-large",
            tool_strategy="native",
            static_models=_models(
                "mistral-tiny",
                "mistral-small",
                "mistral-medium",
                "mistral-large",
                "open-mistral-7b",
                "open-mixtral-8x7b",
            ),
        ),
        BackendProfile(
            provider_id="deepseek",
            display_name="DeepSeek",
            description="DeepSeek chat and coder models",
            website="https://deepseek.ai",
            codec=OpenAICompatibleCodec(),
            formatter=_CHAT_WITH_TOOLS,
            default_endpoint="https://api.deepseek.com/v1",
            default_model="deepseek-chat",
            tool_strategy="native",
            static_models=_models(("deepseek-chat", "DeepSeek Chat"), ("deepseek-coder", "DeepSeek Coder")),
        ),
        BackendProfile(
            provider_id="openrouter",
            display_name="OpenRouter",
            description="Many models behind one OpenAI-compatible API",
            website="https://openrouter.ai",
            codec=OpenAICompatibleCodec(extra_headers={"X-Title": "switchboard"}),
            formatter=_CHAT_WITH_TOOLS,
            default_endpoint="https://openrouter.ai/api/v1",
            default_model="openai/gpt-3.5-turbo",
            tool_strategy="native",
            static_models=_models("openai/gpt-3.5-turbo", "openai/gpt-4", "anthropic/claude-2"),
        ),
        BackendProfile(
            provider_id="perplexity",
            display_name="Perplexity",
            description="Perplexity online and chat models",
            website="https://www.perplexity.ai/",
            codec=OpenAICompatibleCodec(lists_models=False),
            formatter=_CHAT,
            default_endpoint="https://api.perplexity.ai",
            default_model="sonar-medium-online",
            static_models=_models(
                "sonar-medium-online",
                "sonar-medium-chat",
                "sonar-small-online",
                "sonar-small-chat",
                "codellama-70b-instruct",
                "mixtral-8x7b-instruct",
            ),
        ),
        BackendProfile(
            provider_id="togetherai",
            display_name="Together AI",
            description="Open models hosted by Together",
            website="https://www.together.ai/",
            codec=OpenAICompatibleCodec(),
            formatter=_CHAT_WITH_TOOLS,
            default_endpoint="https://api.together.xyz/v1",
            default_model="mistralai/Mixtral-8x7B-Instruct-v0.1",
            tool_strategy="native",
            static_models=_models(
                "mistralai/Mixtral-8x7B-Instruct-v0.1",
                "meta-llama/Llama-3-70b-chat",
                "meta-llama/Llama-3-8b-chat",
                "mistralai/Mistral-7B-Instruct-v0.2",
                "codellama/CodeLlama-34b-Instruct",
            ),
        ),
        BackendProfile(
            provider_id="lmstudio",
            display_name="LM Studio",
            description="Models served by a local LM Studio instance",
            website="https://lmstudio.ai",
            codec=OpenAICompatibleCodec(),
            formatter=_CHAT,
            default_endpoint="http://localhost:1234/v1",
            default_model="local-model",
            requires_api_key=False,
            static_models=_models(("local-model", "Currently loaded model")),
        ),
        BackendProfile(
            provider_id="cohere",
            display_name="Cohere",
            description="Cohere Command models",
            website="https://cohere.ai",
            codec=CohereCodec(),
            formatter=_SYSTEM_FIELD,
            default_endpoint="https://api.cohere.ai/v1",
            default_model="command",
            static_models=_models("command", "command-light", "command-r", "command-r-plus"),
        ),
        BackendProfile(
            provider_id="ollama",
            display_name="Ollama",
            description="Models served by a local Ollama instance",
            website="https://ollama.ai",
            codec=OllamaCodec(),
            formatter=MessagesFormatter(emulate_tools=True),
            default_endpoint=OLLAMA_ENDPOINT,
            default_model="llama3",
            requires_api_key=False,
            tool_strategy="emulated",
            static_models=_models("llama3", "mistral", "codellama"),
        ),
        BackendProfile(
            provider_id="codellama",
            display_name="Code Llama",
            description="Code Llama served by Ollama in raw prompt mode",
            website="https://ai.meta.com/blog/code-llama-large-language-model-coding/",
            codec=OllamaGenerateCodec(),
            formatter=DelimitedFormatter("llama2"),
            default_endpoint=OLLAMA_ENDPOINT,
            default_model="codellama:7b-instruct",
            requires_api_key=False,
            static_models=_models(
                "codellama:7b",
                "codellama:13b",
                "codellama:34b",
                "codellama:7b-instruct",
                "codellama:13b-instruct",
                "codellama:34b-instruct",
                "codellama:7b-python",
                "codellama:13b-python",
                "codellama:34b-python",
            ),
        ),
        BackendProfile(
            provider_id="gguf",
            display_name="GGUF (llama.cpp)",
            description="Local GGUF models served by llama.cpp",
            website="https://github.com/ggerganov/llama.cpp",
            codec=LlamaCppCodec(),
            formatter=DelimitedFormatter("llama2"),
            default_endpoint="http://localhost:8080",
            requires_api_key=False,
        ),
        BackendProfile(
            provider_id="ai21",
            display_name="AI21 Studio",
            description="AI21 Jurassic and Jamba models",
            website="https://www.ai21.com/studio",
            codec=AI21Codec(),
            formatter=DelimitedFormatter("human_assistant"),
            default_endpoint="https://api.ai21.com/studio/v1",
            default_model="j2-ultra",
            static_models=_models("j2-ultra", "j2-mid", "j2-light", "jamba-instruct"),
        ),
        BackendProfile(
            provider_id="alephalpha",
            display_name="Aleph Alpha",
            description="Aleph Alpha Luminous models",
            website="https://www.aleph-alpha.com/",
            codec=AlephAlphaCodec(),
            formatter=DelimitedFormatter("human_ai"),
            default_endpoint="https://api.aleph-alpha.com",
            default_model="luminous-supreme",
            static_models=_models(
                "luminous-supreme", "luminous-extended", "luminous-base", "luminous-small"
            ),
        ),
        BackendProfile(
            provider_id="huggingface",
            display_name="Hugging Face",
            description="Models on the Hugging Face Inference API",
            website="https://huggingface.co/inference-api",
            codec=TextGenerationCodec(),
            formatter=DelimitedFormatter("zephyr"),
            default_endpoint=HF_INFERENCE_ENDPOINT,
            default_model="mistralai/Mistral-7B-Instruct-v0.2",
            static_models=_models(
                "mistralai/Mistral-7B-Instruct-v0.2",
                "meta-llama/Llama-2-7b-chat-hf",
                "meta-llama/Llama-2-13b-chat-hf",
                "tiiuae/falcon-7b-instruct",
                "microsoft/phi-2",
                "google/gemma-7b-it",
            ),
        ),
        _hf_profile(
            "noushermes",
            "Nous Hermes",
            "chatml",
            _models(
                "NousResearch/Nous-Hermes-2-Mixtral-8x7B-DPO",
                "NousResearch/Nous-Hermes-2-Yi-34B",
                "NousResearch/Nous-Hermes-Llama2-13b",
            ),
            website="https://huggingface.co/NousResearch",
            description="Nous Hermes instruction-tuned models",
        ),
        _hf_profile(
            "phi",
            "Microsoft Phi",
            "phi3",
            _models(
                "microsoft/phi-3-mini-4k-instruct",
                "microsoft/phi-3-mini-128k-instruct",
                "microsoft/phi-3-small-8k-instruct",
                "microsoft/phi-3-medium-4k-instruct",
                "microsoft/phi-2",
            ),
            website="https://www.microsoft.com/en-us/research/blog/phi-3-technical-report/",
            description="Microsoft Phi small language models",
        ),
        _hf_profile(
            "starcoder",
            "StarCoder",
            "starcoder",
            _models(
                "bigcode/starcoder2-15b",
                "bigcode/starcoder2-7b",
                "bigcode/starcoder2-3b",
                "bigcode/starcoder",
                "bigcode/starcoderbase",
            ),
            website="https://huggingface.co/bigcode",
            description="BigCode StarCoder models",
        ),
        _hf_profile(
            "stablecode",
            "StableCode",
            "human_assistant",
            _models(
                "stabilityai/stablecode-instruct-alpha-3b",
                "stabilityai/stablecode-completion-alpha-3b",
                "stabilityai/stablecode-completion-alpha-3b-4k",
            ),
            website="https://huggingface.co/stabilityai/stablecode-instruct-alpha-3b",
            description="Stability AI StableCode models",
        ),
        _hf_profile(
            "wizardcoder",
            "WizardCoder",
            "vicuna",
            _models("WizardLMTeam/WizardCoder-15B-V1.0", "WizardLMTeam/WizardCoder-Python-34B-V1.0"),
            website="https://huggingface.co/WizardLMTeam",
            description="WizardLM WizardCoder models",
        ),
        _hf_profile(
            "xwincoder",
            "XwinCoder",
            "vicuna",
            _models("xwin-lm/XwinCoder-7B", "xwin-lm/XwinCoder-13B", "xwin-lm/XwinCoder-34B"),
            website="https://huggingface.co/xwin-lm/XwinCoder",
            description="Xwin-LM XwinCoder models",
        ),
        _hf_profile(
            "yicode",
            "Yi-Coder",
            "chatml",
            _models("01-ai/Yi-Coder-9B-Chat", "01-ai/Yi-Coder-1.5B-Chat"),
            website="https://huggingface.co/01-ai",
            description="01.AI Yi-Coder models",
        ),
        _hf_profile(
            "codeparrot",
            "CodeParrot",
            "plain",
            _models(
                "codeparrot/codeparrot-small",
                "codeparrot/codeparrot",
                "codeparrot/codeparrot-small-multi",
            ),
            website="https://huggingface.co/codeparrot",
            description="CodeParrot Python code models",
        ),
    )


def profiles_by_id(
    profiles: Iterable[BackendProfile] | None = None,
) -> dict[str, BackendProfile]:
    """Index *profiles* (default: built-ins) by provider id."""
    return {p.provider_id: p for p in (profiles if profiles is not None else builtin_profiles())}
