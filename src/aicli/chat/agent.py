"""
Agent mode - generate a complete application from a description.

One structured model response becomes a folder of files:
1. Ask the model for a GeneratedApplication
2. Validate it (non-empty, every path confined to the app folder)
3. Write the files, overwriting anything already there
4. Show the tree and setup commands
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from aicli.ai.gateway import ModelGateway
from aicli.errors import GenerationError, ModelGatewayError, NetworkError, UnsafePathError
from aicli.storage import ChatService, Conversation, MessageRole
from aicli.ui import AICliConsole

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10

APPLICATION_PROMPT = """Create a complete, production ready application for: {description}

CRITICAL REQUIREMENTS:
1. Generate all files needed for the application to run.
2. Include package.json with all packages and correct versions.
3. Include README.md with setup instructions.
4. Include configuration files (.gitignore, etc.)
5. Write clean, well-commented, production-ready code.
6. Include error handling and input validation.
7. Use modern JavaScript/TypeScript best practices.
8. Make sure all imports and paths are correct.
9. NO PLACEHOLDERS - everything must be complete and working.

Provide:
- A meaningful kebab-case folder name
- ALL necessary files with complete content, using paths relative to that folder
- Setup commands (cd folder, npm install, npm run dev, etc.)
- All dependencies with versions"""


class GeneratedFile(BaseModel):
    path: str = Field(description="Relative file path")
    content: str = Field(description="Complete file content")


class Dependency(BaseModel):
    name: str = Field(description="Name of the package")
    version: str = Field(description="Version of the package")


class GeneratedApplication(BaseModel):
    """Structured output requested from the model."""

    model_config = ConfigDict(populate_by_name=True)

    folder_name: str = Field(alias="folderName", min_length=1, description="Kebab-case folder name for the application")
    description: str = Field(description="Brief description of what was created")
    files: List[GeneratedFile] = Field(description="All files needed for the application")
    setup_commands: List[str] = Field(alias="setupCommands", description="Bash commands to setup and run")
    dependencies: List[Dependency] = Field(default_factory=list, description="Dependencies with versions")


@dataclass
class GenerationResult:
    folder_name: str
    app_dir: Path
    files: List[str]
    commands: List[str]
    success: bool = True

    def summary(self) -> str:
        """Assistant message stored for this generation."""
        return (
            f"Generated application: {self.folder_name}\n"
            f"Files created: {len(self.files)}\n"
            f"Location: {self.app_dir}\n"
            f"Setup Commands: {chr(10).join(self.commands)}"
        )


def resolve_app_dir(cwd: Path, folder_name: str) -> Path:
    """`cwd/folder_name`, where folder_name must be one plain path segment."""
    name = folder_name.strip()
    pure = PurePath(name)
    if (
        not name
        or pure.is_absolute()
        or len(pure.parts) != 1
        or "\\" in name
        or name in (".", "..")
    ):
        raise UnsafePathError(f"Invalid application folder name: {folder_name!r}")
    return cwd.resolve() / name


def resolve_file_path(app_dir: Path, file_path: str) -> Path:
    """Resolve a generated path, refusing anything outside app_dir."""
    path = PurePath(file_path.replace("\\", "/"))
    if not str(path).strip() or path.is_absolute():
        raise UnsafePathError(f"Refusing to write absolute or empty path: {file_path!r}")

    base = app_dir.resolve()
    resolved = (base / path).resolve()

    # Security check: ensure within app directory
    try:
        relative = resolved.relative_to(base)
    except ValueError:
        raise UnsafePathError(f"Path escapes application directory: {file_path}")
    if not relative.parts:
        raise UnsafePathError(f"Path does not name a file: {file_path!r}")

    return resolved


class AgentGenerator:
    """Turns a description into a project on disk."""

    def __init__(self, gateway: ModelGateway, ui: Optional[AICliConsole] = None):
        self.gateway = gateway
        self.ui = ui

    async def generate(self, description: str, cwd: Path) -> GenerationResult:
        """
        Generate and write an application.

        Raises:
            GenerationError: no files, unsafe paths, or malformed output
            ModelGatewayError / NetworkError: the model call failed
        """
        if self.ui:
            self.ui.print_hint(f"Request: {description}")

        prompt = APPLICATION_PROMPT.format(description=description)
        if self.ui:
            with self.ui.thinking("Generating your application..."):
                application = await self.gateway.generate_object(prompt, GeneratedApplication)
        else:
            application = await self.gateway.generate_object(prompt, GeneratedApplication)

        logger.info(f"Model produced {application.folder_name} with {len(application.files)} file(s)")

        if self.ui:
            self.ui.print_success(f"Generated: {application.folder_name}")
            self.ui.print_hint(f"Description: {application.description}")

        if not application.files:
            raise GenerationError("No files were generated")

        app_dir, targets = self._plan(cwd, application)

        if self.ui:
            self.ui.print_file_tree(application.folder_name, [f.path for f in application.files])
            self.ui.console.print("\n[cyan]Creating files...[/]\n")

        self._write(app_dir, targets)

        if self.ui:
            self.ui.print_success("Application created successfully")
            self.ui.console.print(f"[cyan]Location: [bold]{app_dir}[/bold][/]")
            self.ui.print_setup_commands(application.setup_commands)

        return GenerationResult(
            folder_name=application.folder_name,
            app_dir=app_dir,
            files=[f.path for f in application.files],
            commands=list(application.setup_commands),
        )

    def _plan(self, cwd: Path, application: GeneratedApplication) -> Tuple[Path, List[Tuple[GeneratedFile, Path]]]:
        """Validate every path before anything touches the disk."""
        app_dir = resolve_app_dir(cwd, application.folder_name)
        targets = [(f, resolve_file_path(app_dir, f.path)) for f in application.files]
        return app_dir, targets

    def _write(self, app_dir: Path, targets: List[Tuple[GeneratedFile, Path]]) -> None:
        app_dir.mkdir(parents=True, exist_ok=True)
        if self.ui:
            self.ui.print_info(f"Created directory: {app_dir.name}/")

        for generated, target in targets:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(generated.content.encode("utf-8"))
            logger.debug(f"Wrote {target}")
            if self.ui:
                self.ui.print_file_written(generated.path)


def check_description(value: str) -> Optional[str]:
    """Prompt validation for agent requests; 'exit' always passes."""
    text = value.strip()
    if text.lower() == "exit":
        return None
    if not text:
        return "Description can't be empty"
    if len(text) < MIN_DESCRIPTION_LENGTH:
        return f"Please provide more details (at least {MIN_DESCRIPTION_LENGTH} characters)"
    return None


class AgentSession:
    """Interactive agent loop bound to one conversation."""

    def __init__(
        self,
        ui: AICliConsole,
        generator: AgentGenerator,
        chat_service: ChatService,
        conversation: Conversation,
        cwd: Path,
    ):
        self.ui = ui
        self.generator = generator
        self.chat_service = chat_service
        self.conversation = conversation
        self.cwd = cwd

    async def run(self) -> None:
        self.ui.print_agent_help()

        while True:
            description = (await self.ui.prompt_input(
                "What would you like to build? ",
                check=check_description,
            )).strip()

            if description.lower() == "exit":
                self.ui.print_warning("Agent session ended")
                return

            self.ui.print_user_message(description, title="Your request")
            self.chat_service.add_message(self.conversation.id, MessageRole.USER, description)

            if not await self._generate_with_retry(description):
                return

            if not self.ui.confirm("Would you like to generate another application?", default=True):
                self.ui.print_success("Great! Check your new application.")
                return

    async def _generate_with_retry(self, description: str) -> bool:
        """Run one request, offering retries. Returns False when the user gives up."""
        while True:
            try:
                result = await self.generator.generate(description, self.cwd)
            except (GenerationError, ModelGatewayError, NetworkError, OSError) as e:
                logger.debug("Generation failed", exc_info=True)
                self.ui.print_error(f"Error generating application: {e}")
                self.chat_service.add_message(self.conversation.id, MessageRole.ASSISTANT, f"Error: {e}")
                if not self.ui.confirm("Would you like to retry?", default=True):
                    return False
                continue

            self.chat_service.add_message(self.conversation.id, MessageRole.ASSISTANT, result.summary())
            return True
