from django.contrib import admin
from .models import Concept, ConceptCategory, ConceptPriceHistory, CollaboratorPrice


@admin.register(ConceptCategory)
class ConceptCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name']


@admin.register(Concept)
class ConceptAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'format', 'price', 'sat_code', 'brand', 'is_active', 'updated_at']
    list_filter = ['is_active', 'format', 'category']
    search_fields = ['title', 'sat_code', 'brand', 'model']
    ordering = ['category', 'title']


@admin.register(ConceptPriceHistory)
class ConceptPriceHistoryAdmin(admin.ModelAdmin):
    list_display = ['concept', 'old_price', 'new_price', 'changed_by', 'changed_at']
    search_fields = ['concept__title']
    readonly_fields = ['concept', 'old_price', 'new_price', 'changed_by', 'changed_at']


@admin.register(CollaboratorPrice)
class CollaboratorPriceAdmin(admin.ModelAdmin):
    list_display = ['collaborator', 'concept', 'custom_price', 'updated_at']
    search_fields = ['collaborator__full_name', 'concept__title']
