"""
Command-line entry point for the Inap assistant.

    python main.py ask "what time is check-in?"
    python main.py chat
    python main.py embed
"""

import argparse
import asyncio
import json
import logging
import sys
from contextlib import contextmanager

# Import configuration first and ensure proper setup
try:
    from config import config
    config.setup()
except Exception as e:
    print(f"CRITICAL ERROR: Failed to load configuration: {e}")
    sys.exit(1)

from knowledge import ConversationContext, ConversationMessage, KnowledgeStore
from query_handling.engine import DecisionEngine
from response import HashingEmbeddingProvider, build_providers

logger = logging.getLogger("Inap")

HISTORY_LIMIT = 10


@contextmanager
def error_context(operation_name):
    """Context manager for consistent error handling."""
    try:
        logger.debug(f"Starting {operation_name}")
        yield
        logger.debug(f"Completed {operation_name}")
    except Exception as e:
        logger.error(f"Error during {operation_name}: {e}")
        if logger.isEnabledFor(logging.DEBUG):
            import traceback
            logger.debug(traceback.format_exc())
        raise


def build_engine():
    embedding_provider, chat_provider = build_providers(config)
    store = KnowledgeStore.from_config(config)
    engine = DecisionEngine.from_config(config, chat_provider, embedding_provider)
    return store, engine


def log_result(payload):
    details = payload["processingDetails"]
    logger.info(
        f"Decision: {details['finalDecision']} | search: {details['searchMethod']} | "
        f"candidates: {details['candidatesFound']} | confidence: {payload['confidence']:.3f} "
        f"({details['confidenceCategory']}) | {payload['processingTimeMs']}ms"
    )
    if details.get("fallbackReason"):
        logger.warning(f"Lexical fallback used: {details['fallbackReason']}")


def cmd_ask(args):
    store, engine = build_engine()
    conversation = ConversationContext(current_property=args.property)
    with error_context("message processing"):
        result = asyncio.run(engine.process_message(args.message, store.get_snapshot(), conversation))

    payload = result.to_payload()
    log_result(payload)
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def cmd_chat(args):
    """Interactive tester: each line is handled as a WhatsApp message."""
    store, engine = build_engine()
    history = []
    current_property = args.property

    print("Inap chat tester - type a message, '/reload' to refresh knowledge, '/quit' to exit")
    while True:
        try:
            message = input("\nCustomer: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not message:
            continue
        if message in ("/quit", "/exit"):
            break
        if message == "/reload":
            store.invalidate()
            snapshot = store.get_snapshot()
            print(f"Reloaded {len(snapshot.faqs)} FAQs and {len(snapshot.homestays)} homestays")
            continue

        conversation = ConversationContext(
            recent_messages=tuple(history[-HISTORY_LIMIT:]),
            current_property=current_property,
        )
        result = asyncio.run(engine.process_message(message, store.get_snapshot(), conversation))
        payload = result.to_payload()
        log_result(payload)

        details = result.processing_details
        if result.answer is None:
            print(f"Assistant: (no reply - {details.final_decision})")
        else:
            print(f"Assistant: {result.answer}")
        print(f"  [{details.final_decision} | {details.search_method} | "
              f"confidence {result.confidence:.2f} {details.confidence_category}]")
        if args.verbose:
            for candidate in details.top_candidates:
                print(f"    {candidate['final_score']:.3f}  {candidate['method']:<9} {candidate['question']}")

        history.append(ConversationMessage(text=message, is_from_customer=True))
        if result.answer:
            history.append(ConversationMessage(text=result.answer, is_from_customer=False))

    return 0


async def _embed_all(provider, questions):
    return {q: await provider.embed(q) for q in questions}


def cmd_embed(args):
    """Precompute FAQ embeddings and store them on the FAQ export."""
    store = KnowledgeStore.from_config(config)
    if args.local:
        provider = HashingEmbeddingProvider(dim=args.dim)
    else:
        provider, _ = build_providers(config)
        if provider is None:
            logger.error("Embeddings are disabled (INAP_USE_EMBEDDINGS=false); use --local for hashing vectors")
            return 1

    snapshot = store.get_snapshot()
    questions = [faq.question for faq in snapshot.faqs if faq.is_active or args.include_inactive]
    if not questions:
        logger.warning("No FAQs to embed")
        return 0

    with error_context("FAQ embedding"):
        embeddings = asyncio.run(_embed_all(provider, questions))
    updated = store.write_embeddings(embeddings)
    print(f"Stored embeddings for {updated} FAQs")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(description="Inap homestay FAQ assistant")
    sub = parser.add_subparsers(dest="command", required=True)

    ask = sub.add_parser("ask", help="Process one message and print the JSON result")
    ask.add_argument("message", help="Customer message")
    ask.add_argument("--property", default=None, help="Homestay the conversation is about")
    ask.set_defaults(func=cmd_ask)

    chat = sub.add_parser("chat", help="Interactive chat tester")
    chat.add_argument("--property", default=None, help="Homestay the conversation is about")
    chat.add_argument("-v", "--verbose", action="store_true", help="Show reranked candidates")
    chat.set_defaults(func=cmd_chat)

    embed = sub.add_parser("embed", help="Precompute FAQ embeddings")
    embed.add_argument("--local", action="store_true", help="Use local hashing embeddings instead of OpenAI")
    embed.add_argument("--dim", type=int, default=config.HASHING_EMBEDDING_DIM, help="Dimension of local hashing embeddings")
    embed.add_argument("--include-inactive", action="store_true", help="Also embed inactive FAQs")
    embed.set_defaults(func=cmd_embed)

    return parser


def main(argv=None):
    """Main entry point for the command line."""
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        logger.info("Terminated by user")
        return 0
    except Exception as e:
        logger.error(f"Unhandled exception: {e}")
        return 1


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
