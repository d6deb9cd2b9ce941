"""
Unit tests for SDK layer.

Tests the priced OpenAI client wrapper.
"""

from unittest.mock import Mock, patch

import pytest

from token_costs.sdk import PricedOpenAI, PricingClient
from token_costs.sdk.client import CostResult
from token_costs.sdk.errors import ModelNotFoundError


def make_response(prompt_tokens: int, completion_tokens: int, cached_tokens=None) -> Mock:
    response = Mock()
    response.id = "chat_123"
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    if cached_tokens is None:
        response.usage.prompt_tokens_details = None
    else:
        response.usage.prompt_tokens_details.cached_tokens = cached_tokens
    return response


def offline_pricing_client() -> PricingClient:
    return PricingClient(
        offline=True,
        custom_providers={"openai": {"gpt-4o": {"input": 2.5, "output": 10, "cached": 1.25}}},
    )


class TestPricedOpenAI:
    """Test PricedOpenAI client wrapper."""

    @patch('token_costs.sdk.openai_client.OpenAI')
    def test_init_success(self, mock_openai_class):
        """Test successful initialization."""
        mock_openai_class.return_value = Mock()
        pricing_client = offline_pricing_client()

        client = PricedOpenAI(model="gpt-4o", pricing_client=pricing_client)

        assert client.model == "gpt-4o"
        assert client.provider == "openai"
        assert client.pricing_client is pricing_client
        assert client.client is not None
        assert client.last_cost is None
        assert client.total_cost == 0.0

    def test_init_missing_model(self):
        """Test initialization fails with missing model."""
        with pytest.raises(ValueError, match="model is required"):
            PricedOpenAI(model="")

        with pytest.raises(ValueError, match="model is required"):
            PricedOpenAI(model=None)

    @patch('token_costs.sdk.openai_client.OpenAI')
    def test_chat_prices_usage(self, mock_openai_class):
        """Test a chat call is priced and the response returned unchanged."""
        mock_response = make_response(1_000_000, 100_000)
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = mock_response
        mock_openai_class.return_value = mock_client

        client = PricedOpenAI(model="gpt-4o", pricing_client=offline_pricing_client())
        response = client.chat([{"role": "user", "content": "Hello"}], temperature=0.2)

        assert response is mock_response
        assert client.last_cost.input_cost == pytest.approx(2.5)
        assert client.last_cost.output_cost == pytest.approx(1.0)
        assert client.total_cost == pytest.approx(3.5)
        mock_client.chat.completions.create.assert_called_once_with(
            model="gpt-4o",
            messages=[{"role": "user", "content": "Hello"}],
            temperature=0.2,
            max_tokens=None
        )

    @patch('token_costs.sdk.openai_client.OpenAI')
    def test_chat_passes_cached_tokens(self, mock_openai_class):
        """Test cached prompt tokens reach the cost calculation."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = make_response(1000, 50, cached_tokens=800)
        mock_openai_class.return_value = mock_client
        pricing_client = Mock(spec=PricingClient)
        pricing_client.calculate_cost.return_value = CostResult(
            input_cost=0.001, output_cost=0.0005, total_cost=0.0015,
            used_cached_pricing=True, date="2025-03-10", stale=False
        )

        client = PricedOpenAI(model="gpt-4o", pricing_client=pricing_client)
        client.chat([{"role": "user", "content": "Hello"}])

        pricing_client.calculate_cost.assert_called_once_with(
            "openai", "gpt-4o",
            input_tokens=1000,
            output_tokens=50,
            cached_input_tokens=800
        )
        assert client.last_cost.used_cached_pricing is True

    @patch('token_costs.sdk.openai_client.OpenAI')
    def test_total_cost_accumulates(self, mock_openai_class):
        """Test costs add up across calls."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = make_response(1_000_000, 0)
        mock_openai_class.return_value = mock_client

        client = PricedOpenAI(model="gpt-4o", pricing_client=offline_pricing_client())
        for _ in range(3):
            client.chat([{"role": "user", "content": "Hello"}])

        assert client.last_cost.total_cost == pytest.approx(2.5)
        assert client.total_cost == pytest.approx(7.5)

    @patch('token_costs.sdk.openai_client.OpenAI')
    def test_chat_empty_messages(self, mock_openai_class):
        """Test chat fails with empty messages."""
        mock_openai_class.return_value = Mock()
        client = PricedOpenAI(model="gpt-4o", pricing_client=offline_pricing_client())

        with pytest.raises(ValueError, match="messages is required"):
            client.chat([])

    @patch('token_costs.sdk.openai_client.OpenAI')
    def test_chat_missing_usage(self, mock_openai_class):
        """Test responses without usage are rejected."""
        mock_response = Mock()
        mock_response.usage = None
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = mock_response
        mock_openai_class.return_value = mock_client

        client = PricedOpenAI(model="gpt-4o", pricing_client=offline_pricing_client())
        with pytest.raises(ValueError, match="missing usage"):
            client.chat([{"role": "user", "content": "Hello"}])

    @patch('token_costs.sdk.openai_client.OpenAI')
    def test_openai_errors_propagate(self, mock_openai_class):
        """Test OpenAI errors are not wrapped."""
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = RuntimeError("API Error")
        mock_openai_class.return_value = mock_client

        client = PricedOpenAI(model="gpt-4o", pricing_client=offline_pricing_client())
        with pytest.raises(RuntimeError, match="API Error"):
            client.chat([{"role": "user", "content": "Hello"}])
        assert client.last_cost is None

    @patch('token_costs.sdk.openai_client.OpenAI')
    def test_pricing_errors_propagate(self, mock_openai_class):
        """Test unknown models fail loudly after the call."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = make_response(10, 10)
        mock_openai_class.return_value = mock_client

        client = PricedOpenAI(model="gpt-4o-mini", pricing_client=offline_pricing_client())
        with pytest.raises(ModelNotFoundError):
            client.chat([{"role": "user", "content": "Hello"}])
        assert client.total_cost == 0.0
