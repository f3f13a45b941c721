# run_all.py
"""
Local dev launcher: the FastAPI app, plus Redis and the ARQ worker when
SESSION_BACKEND=redis (the worker sweeps sessions and sends reminders).
"""
import asyncio
import sys

from app.core.config import settings


async def run_process(name: str, cmd: list):
    """
    Runs a subprocess and streams its output prefixed with ``name``.
    """
    print(f"▶ Starting {name}: {' '.join(cmd)}")

    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    async def _pipe_reader(stream, prefix):
        while True:
            line = await stream.readline()
            if not line:
                break
            print(f"[{prefix}] {line.decode().rstrip()}")

    await asyncio.gather(
        _pipe_reader(process.stdout, name),
        _pipe_reader(process.stderr, name),
    )
    return await process.wait()


async def main():
    uvicorn_cmd = [
        sys.executable, "-m", "uvicorn", "app.main:app",
        "--reload",
        "--host", "0.0.0.0",
        "--port", str(settings.PORT),
    ]
    processes = [run_process("APP", uvicorn_cmd)]

    if settings.SESSION_BACKEND.lower() == "redis":
        processes.append(run_process("REDIS", ["redis-server"]))
        # Module path of the settings class, not a file path
        processes.append(run_process(
            "ARQ",
            [sys.executable, "-m", "arq", "app.infrastructure.queue.arq_settings.WorkerSettings"],
        ))

    await asyncio.gather(*processes)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Shutting down...")
