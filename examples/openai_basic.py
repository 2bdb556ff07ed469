"""Track one OpenAI chat completion with AgentBill.

Needs OPENAI_API_KEY and AGENTBILL_API_KEY in the environment;
AGENTBILL_BASE_URL is optional.
"""

import os

from agentbill import AgentBill, AgentBillConfig


def main() -> None:
    config = AgentBillConfig.from_env(
        api_key=os.getenv("AGENTBILL_API_KEY", "your-api-key"),
        customer_id="customer-123",
        debug=True,
    )

    with AgentBill.init(config) as agentbill:
        openai = agentbill.wrap_openai()
        messages = [
            {"role": "system", "content": "You are a helpful assistant."},
            {"role": "user", "content": "What is the capital of France?"},
        ]
        response = openai.chat_completion("gpt-4o-mini", messages)
        print(response["choices"][0]["message"]["content"])


if __name__ == "__main__":
    main()
