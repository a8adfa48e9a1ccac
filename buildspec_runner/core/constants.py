"""
Constants
Centralised storage for buildspec phases, container paths and the
bookkeeping names used by the compiled phase program.
"""
SUPPORTED_VERSION = 0.2

# Execution order as documented for the hosted build service.
PHASES = ("install", "pre_build", "build", "post_build")
DEFERRED_FAILURE_PHASE = "build"
FINAL_PHASE = "post_build"

# Container layout: source is mounted read-only, then copied somewhere writable.
REMOTE_SOURCE_VOLUME_PATH_RO = "/usr/app_ro/"
REMOTE_SOURCE_VOLUME_PATH = "/usr/app/"
CONTAINER_SHELL = "/bin/bash"

# Bookkeeping shell variables
DO_NEXT = "_bsr_do_next_"
EXIT_CODE = "_bsr_exit_code_"
BUILD_EXIT_CODE = "_bsr_build_exit_code_"

DEBUG_HEADER = "[BuildSpecRunner Runner]"
