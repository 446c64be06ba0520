"""m4bify -- assemble a directory of audio files into one chaptered, tagged M4B audiobook.

Core modules:
    config     -- Pipeline configuration via pydantic-settings (.env + env vars)
    cli        -- Click entry points: `m4bify` (one book) and `m4bulk` (a directory
                  of books, in parallel). CLI flags passed as kwargs to PipelineConfig.
    runner     -- Runs the stages in order inside a private scratch workspace
    batch      -- Thread-pool orchestrator for many books, one log file per book
    toolkit    -- AudioToolkit protocol and its ffmpeg/ffprobe implementation
    ffmpeg     -- ffmpeg subprocess wrappers (encode, concat, chapters, cover, tags)
    ffprobe    -- Audio file inspection via ffprobe subprocess. Numeric functions raise
                  ValueError on empty ffprobe output (corrupt files, missing binary).
    quality    -- Bitrate/VBR/lossless parsing and AAC encoder selection
    timeline   -- Chapter start offsets and timestamp formatting
    sanitize   -- Chapter-name derivation from filenames
    workspace  -- Scratch directory lifecycle

Subpackages:
    stages     -- Pipeline stages (discover, encode, timeline, concat, chapters,
                  cover, metadata, publish)
"""
