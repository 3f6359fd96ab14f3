"""Per-layer file trees and cross-layer efficiency."""
