"""Planning Copilot — a console assistant that plans and carries out multi-step tasks.

Architecture Overview
=====================

The assistant is a **LangGraph** state machine with two nodes:

1. **chatbot** — Invokes Claude with the conversation history and the tool
   catalog bound. The model answers directly or calls tools.

2. **tools** — Runs the requested tools. Every call passes through the
   ``CallInterceptor``, which renders it for the operator and can rewrite
   the result the model sees.

Routing: chatbot → (tool calls?) → tools → chatbot (loop until no tool calls → END)

Key Design Decisions
--------------------
- **Plans as templates**: the planner model writes a Jinja2 template that
  calls the plannable tools. Plans are shown for review and only run on
  request; saved plans are the template text, verbatim.
- **Single session**: the current plan slot and the history live in a
  ``Session`` value passed explicitly to the plan engine.
- **Explicit tool table**: tools are ``ToolSpec`` entries registered once at
  start-up; the interceptor's special cases are declared on each
  ``ToolSpec`` (``ResultDisplay``), not by name checks.
- **Knowledge base**: one vector store, two tagged partitions
  (``documentation`` for Q&A, ``cookbook`` for planning guidance).
- **No hidden recovery**: model, retrieval and tool failures propagate to
  the chat loop; side effects of earlier plan steps are not undone.

Package Structure
-----------------
- ``copilot/agent.py`` — LangGraph graph and model builders
- ``copilot/conversation.py`` — chat loop with token streaming
- ``copilot/config.py`` — configuration from environment variables
- ``copilot/prompts.py`` — chat, planner, chart and answer prompts
- ``copilot/interceptor.py`` — before/after hooks around tool calls
- ``copilot/display.py`` — console rendering (rich)
- ``copilot/planning/`` — plan type, plan engine, chart links
- ``copilot/services/`` — knowledge retriever, SMTP and web search clients
- ``copilot/tools/`` — tool registry and catalog entries
- ``copilot/main.py`` — CLI entry point
"""
