#!/usr/bin/env python3
"""
PDFier - PDF tools and chat-with-PDF from the command line.

Usage:
    pdfier status                      Show the current session and usage
    pdfier login <username>            Sign in
    pdfier merge a.pdf b.pdf -o out/   Merge PDFs and download the result
    pdfier compress a.pdf -l high      Compress a PDF
    pdfier protect a.pdf               Password-protect a PDF
    pdfier chat <collection> <query>   Ask a question about a collection
    pdfier serve                       Run the local API server
"""
from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from typing import Awaitable, Callable

import httpx
from dotenv import load_dotenv

from pdfier.client.auth import sign_in
from pdfier.client.tools import COMPRESSION_LEVELS, PRINTING_LEVELS, ProtectPermissions, ToolResult
from pdfier.errors import PdfierError
from pdfier.factory import Services, build_services
from pdfier.session.context import InitOutcome, require_login, restore_session
from pdfier.session.models import is_guest
from pdfier.session.usage import processed_today

Command = Callable[[Services, argparse.Namespace], Awaitable[None]]


def _password(args: argparse.Namespace, prompt: str = "Password: ") -> str:
    return args.password or getpass.getpass(prompt)


async def _save_results(services: Services, result: ToolResult, output: str | None) -> None:
    if not result.download_urls:
        print("The server did not return a download link.")
        return
    if output is None:
        for url in result.download_urls:
            print(f"  {url}")
        return
    for path in await services.tools.download(result, output):
        print(f"  Saved {path}")


async def cmd_status(services: Services, args: argparse.Namespace) -> None:
    """Show the current session and usage."""
    state = services.session.state
    user = state.user

    print("PDFier Status")
    print("-" * 40)
    if user is None:
        print("Not initialized")
        return
    if is_guest(user):
        metrics = user.usage_metrics
        print("Signed in as: Guest")
        print(f"PDFs processed today: {processed_today(metrics)}/{metrics.pdf_processed_limit_daily}")
        return

    metrics = user.usage_metrics
    print(f"Signed in as: {user.name} ({user.email or 'no email'})")
    print(f"Plan: {user.plan_type}")
    print(f"PDFs processed today: {metrics.pdf_processed_today}/{metrics.pdf_processed_limit_daily}")
    print(f"Chat queries this month: {metrics.rag_queries_this_month}/{metrics.rag_queries_limit_monthly}")
    print(f"Indexed documents: {metrics.rag_indexed_documents_count}/{metrics.rag_indexed_documents_limit}")
    print(
        f"Word conversions today: {metrics.word_conversions_today}/{metrics.word_conversions_limit_daily}"
    )


async def cmd_login(services: Services, args: argparse.Namespace) -> None:
    user = await sign_in(services.session, services.auth, args.username, _password(args))
    print(f"Login successful! Welcome, {user.name}.")


async def cmd_logout(services: Services, args: argparse.Namespace) -> None:
    services.session.logout()
    print("Logged out.")


async def cmd_signup(services: Services, args: argparse.Namespace) -> None:
    data = await services.auth.signup(args.username, args.email, _password(args))
    print(data.get("message") or "Signup successful! Please verify your email with the OTP.")
    if data.get("user_id"):
        print(f"User id: {data['user_id']}")


async def cmd_verify(services: Services, args: argparse.Namespace) -> None:
    data = await services.auth.verify_otp(args.user_id, args.otp)
    print(data.get("message") or "Account verified successfully!")


async def cmd_resend_otp(services: Services, args: argparse.Namespace) -> None:
    data = await services.auth.resend_otp(args.user_id, args.email)
    print(data.get("message") or "OTP resent successfully!")


async def cmd_forgot_password(services: Services, args: argparse.Namespace) -> None:
    data = await services.auth.forgot_password(args.email)
    print(data.get("message") or "OTP sent to your email. Please check your inbox.")
    if data.get("user_id"):
        print(f"User id: {data['user_id']}")


async def cmd_reset_password(services: Services, args: argparse.Namespace) -> None:
    new_password = _password(args, "New password: ")
    if not args.password and new_password != getpass.getpass("Confirm password: "):
        raise PdfierError("Passwords do not match.")
    data = await services.auth.reset_password(args.user_id, new_password)
    print(data.get("message") or "Password reset successful!")


async def cmd_merge(services: Services, args: argparse.Namespace) -> None:
    """Merge PDFs."""
    result = await services.tools.merge(args.files)
    print("PDFs merged successfully!")
    await _save_results(services, result, args.output)


async def cmd_compress(services: Services, args: argparse.Namespace) -> None:
    result = await services.tools.compress(args.files, args.level)
    print("PDF compressed successfully!")
    await _save_results(services, result, args.output)


async def cmd_protect(services: Services, args: argparse.Namespace) -> None:
    password = _password(args)
    if not args.password and password != getpass.getpass("Confirm password: "):
        raise PdfierError("Passwords do not match")
    permissions = ProtectPermissions(
        printing=args.printing,
        modifying=args.allow_modifying,
        copying=args.allow_copying,
        form_filling=args.allow_form_filling,
    )
    result = await services.tools.protect(args.files, password, permissions)
    print("PDF protected successfully!")
    await _save_results(services, result, args.output)


async def cmd_documents(services: Services, args: argparse.Namespace) -> None:
    """List documents in a collection, or the most recent ones."""
    require_login(services.session)
    if args.collection_id is None:
        documents = await services.chat.recent_documents(args.num)
        if not documents:
            print("No documents uploaded yet.")
        for d in documents:
            created = d.created_at.strftime("%Y-%m-%d %H:%M") if d.created_at else "-"
            print(f"  - {d.display_name} ({created})")
        return

    documents = await services.chat.fetch_documents(args.collection_id)
    if not documents:
        print("No documents in this collection.")
    for d in documents:
        print(f"  - {d.file_name} ({d.status or 'unknown'})")


async def cmd_conversations(services: Services, args: argparse.Namespace) -> None:
    require_login(services.session)
    if args.create:
        data = await services.chat.create_conversation(args.collection_id, args.create)
        print(f"Created conversation {data.get('id', '')}".rstrip())
        return
    conversations = await services.chat.fetch_conversations(args.collection_id)
    if not conversations:
        print("No conversations yet.")
    for c in conversations:
        print(f"  {c.id}  {c.title or 'Untitled'}")


async def cmd_messages(services: Services, args: argparse.Namespace) -> None:
    require_login(services.session)
    for m in await services.chat.fetch_messages(args.conversation_id):
        print(f"{m.author}: {m.body}")
        print()


async def cmd_chat(services: Services, args: argparse.Namespace) -> None:
    """Ask a single question about a collection."""
    require_login(services.session)
    if args.upload:
        await services.chat.upload_document(args.upload, args.collection_id)
        print(f"Uploaded {args.upload}")

    print(f"Question: {args.query}")
    print("-" * 40)
    data = await services.chat.send_chat(args.query, args.collection_id, args.conversation_id)
    print(data.get("answer") or data.get("response") or data.get("message") or "")
    if data.get("conversation_id"):
        print(f"\n(conversation {data['conversation_id']})")


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the local API server."""
    import uvicorn

    uvicorn.run("pdfier.api.server:create_app", factory=True, host=args.host, port=args.port)


async def _run(command: Command, args: argparse.Namespace) -> None:
    services = build_services()
    try:
        if command not in (cmd_login, cmd_logout):
            outcome = await restore_session(services.session)
            if outcome is InitOutcome.SESSION_EXPIRED:
                print("Your session has expired. Please log in again.", file=sys.stderr)
        await command(services, args)
    finally:
        services.close()


def _add_output(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-o", "--output", help="Download results into this folder")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="PDFier - PDF tools and chat-with-PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    status_parser = subparsers.add_parser("status", help="Show session and usage")
    status_parser.set_defaults(func=cmd_status)

    login_parser = subparsers.add_parser("login", help="Sign in")
    login_parser.add_argument("username", help="Username or email")
    login_parser.add_argument("-p", "--password", help="Password (prompted if omitted)")
    login_parser.set_defaults(func=cmd_login)

    logout_parser = subparsers.add_parser("logout", help="Sign out and continue as guest")
    logout_parser.set_defaults(func=cmd_logout)

    signup_parser = subparsers.add_parser("signup", help="Create an account")
    signup_parser.add_argument("username")
    signup_parser.add_argument("email")
    signup_parser.add_argument("-p", "--password", help="Password (prompted if omitted)")
    signup_parser.set_defaults(func=cmd_signup)

    verify_parser = subparsers.add_parser("verify", help="Verify an account with its OTP")
    verify_parser.add_argument("user_id")
    verify_parser.add_argument("otp")
    verify_parser.set_defaults(func=cmd_verify)

    resend_parser = subparsers.add_parser("resend-otp", help="Send the verification OTP again")
    resend_parser.add_argument("user_id")
    resend_parser.add_argument("email")
    resend_parser.set_defaults(func=cmd_resend_otp)

    forgot_parser = subparsers.add_parser("forgot-password", help="Request a password reset OTP")
    forgot_parser.add_argument("email")
    forgot_parser.set_defaults(func=cmd_forgot_password)

    reset_parser = subparsers.add_parser("reset-password", help="Set a new password")
    reset_parser.add_argument("user_id")
    reset_parser.add_argument("-p", "--password", help="New password (prompted if omitted)")
    reset_parser.set_defaults(func=cmd_reset_password)

    merge_parser = subparsers.add_parser("merge", help="Merge PDF files")
    merge_parser.add_argument("files", nargs="+", help="PDF files, in order")
    _add_output(merge_parser)
    merge_parser.set_defaults(func=cmd_merge)

    compress_parser = subparsers.add_parser("compress", help="Compress PDF files")
    compress_parser.add_argument("files", nargs="+")
    compress_parser.add_argument("-l", "--level", choices=COMPRESSION_LEVELS, default="medium",
                                 help="Compression level (default: medium)")
    _add_output(compress_parser)
    compress_parser.set_defaults(func=cmd_compress)

    protect_parser = subparsers.add_parser("protect", help="Password-protect PDF files")
    protect_parser.add_argument("files", nargs="+")
    protect_parser.add_argument("-p", "--password", help="Password (prompted if omitted)")
    protect_parser.add_argument("--printing", choices=PRINTING_LEVELS, default="high")
    protect_parser.add_argument("--allow-modifying", action="store_true")
    protect_parser.add_argument("--allow-copying", action="store_true")
    protect_parser.add_argument("--allow-form-filling", action="store_true")
    _add_output(protect_parser)
    protect_parser.set_defaults(func=cmd_protect)

    documents_parser = subparsers.add_parser("documents", help="List uploaded documents")
    documents_parser.add_argument("collection_id", nargs="?",
                                  help="Collection to list (default: most recent uploads)")
    documents_parser.add_argument("-n", "--num", type=int, default=3,
                                  help="Number of recent documents (default: 3)")
    documents_parser.set_defaults(func=cmd_documents)

    conversations_parser = subparsers.add_parser("conversations", help="List conversations")
    conversations_parser.add_argument("collection_id")
    conversations_parser.add_argument("--create", metavar="TITLE",
                                      help="Start a new conversation with this title")
    conversations_parser.set_defaults(func=cmd_conversations)

    messages_parser = subparsers.add_parser("messages", help="Show a conversation")
    messages_parser.add_argument("conversation_id")
    messages_parser.set_defaults(func=cmd_messages)

    chat_parser = subparsers.add_parser("chat", help="Ask a question about a collection")
    chat_parser.add_argument("collection_id")
    chat_parser.add_argument("query")
    chat_parser.add_argument("-c", "--conversation-id")
    chat_parser.add_argument("-u", "--upload", help="Upload this PDF to the collection first")
    chat_parser.set_defaults(func=cmd_chat)

    serve_parser = subparsers.add_parser("serve", help="Run the local API server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.func is cmd_serve:
        cmd_serve(args)
        return

    try:
        asyncio.run(_run(args.func, args))
    except PdfierError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except httpx.HTTPError as e:
        print(f"Error: Unable to reach the PDFier server ({e})")
        sys.exit(1)


if __name__ == "__main__":
    main()
