import django_filters
from django.db.models import Q
from .models import Concept

SORTABLE_FIELDS = {'title', 'category', 'price', 'sat_code', 'brand', 'format', 'created_at', 'updated_at'}


class ConceptFilter(django_filters.FilterSet):
    """Catalog filter used by the CPU table and the quotation concept picker"""

    # Basic search - title, description, SAT code, brand, model
    search = django_filters.CharFilter(method='filter_search', label='Search')

    category = django_filters.CharFilter(field_name='category', lookup_expr='exact')
    format = django_filters.CharFilter(field_name='format', lookup_expr='exact')
    is_active = django_filters.BooleanFilter(field_name='is_active')
    price_min = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    price_max = django_filters.NumberFilter(field_name='price', lookup_expr='lte')

    class Meta:
        model = Concept
        fields = ['search', 'category', 'format', 'is_active', 'price_min', 'price_max']

    def filter_search(self, queryset, name, value):
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(
            Q(title__icontains=search) |
            Q(description__icontains=search) |
            Q(sat_code__icontains=search) |
            Q(brand__icontains=search) |
            Q(model__icontains=search)
        )


def apply_sort(queryset, sort_by, sort_dir):
    """Order by a whitelisted field; title ascending by default"""
    field = sort_by if sort_by in SORTABLE_FIELDS else 'title'
    prefix = '-' if sort_dir == 'desc' else ''
    return queryset.order_by(f'{prefix}{field}', 'id')
