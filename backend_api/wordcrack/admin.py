from django.contrib import admin

from .models import Attempt, Entitlement, PracticeUsage, Puzzle, PuzzleBankEntry


@admin.register(PuzzleBankEntry)
class PuzzleBankEntryAdmin(admin.ModelAdmin):
    list_display = ("target_word", "variant", "theme_hint", "used_at", "created_at")
    list_filter = ("variant", "used_at")
    search_fields = ("target_word", "theme_hint")
    ordering = ("variant", "id")


class AttemptInline(admin.TabularInline):
    model = Attempt
    extra = 0
    fields = ("user_id", "mode", "started_at", "final_time_ms", "is_completed", "gave_up")
    readonly_fields = fields
    can_delete = False


@admin.register(Puzzle)
class PuzzleAdmin(admin.ModelAdmin):
    list_display = ("id", "date", "slot", "kind", "variant", "target_word", "display_word", "created_at")
    list_filter = ("kind", "variant", "date")
    search_fields = ("target_word", "display_word")
    inlines = [AttemptInline]
    # Puzzles are immutable once generated.
    readonly_fields = (
        "date", "slot", "kind", "variant", "target_word", "display_word", "letter_menus",
        "start_indices", "theme_hint", "generation_metadata", "bank_entry", "created_at", "updated_at",
    )


@admin.register(Attempt)
class AttemptAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "user_id",
        "puzzle",
        "mode",
        "started_at",
        "completed_at",
        "solve_time_ms",
        "penalty_ms",
        "final_time_ms",
        "is_completed",
        "gave_up",
    )
    list_filter = ("mode", "is_completed", "gave_up")
    search_fields = ("user_id", "puzzle__target_word")
    readonly_fields = ("hints_used", "version", "created_at", "updated_at")


@admin.register(PracticeUsage)
class PracticeUsageAdmin(admin.ModelAdmin):
    list_display = ("user_id", "day", "count")
    list_filter = ("day",)
    search_fields = ("user_id",)


@admin.register(Entitlement)
class EntitlementAdmin(admin.ModelAdmin):
    list_display = ("user_id", "premium_until", "updated_at")
    search_fields = ("user_id",)
